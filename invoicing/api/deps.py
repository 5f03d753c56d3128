from dataclasses import dataclass, field
from typing import Annotated, FrozenSet
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoicing.config import Settings, get_settings
from invoicing.core.security import verify_access_token
from invoicing.database import get_db, get_session_factory
from invoicing.services.invoice_service import InvoiceService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()

# Grants every permission
WILDCARD_PERMISSION = "*"


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated admin, as asserted by the bearer token."""
    id: uuid.UUID
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def has_permission(self, permission_code: str) -> bool:
        return WILDCARD_PERMISSION in self.permissions or permission_code in self.permissions


async def get_current_admin(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AdminPrincipal:
    """
    Dependency to get the current authenticated admin.

    The admin auth service issues the token; permissions travel in the
    ``permissions`` claim so no user lookup happens here.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        admin_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        logger.warning(f"Invalid subject in token: {payload.get('sub')}")
        raise credentials_exception

    permissions = payload.get("permissions") or []
    if isinstance(permissions, str):
        permissions = [permissions]

    return AdminPrincipal(id=admin_id, permissions=frozenset(permissions))


def require_permissions(*required_permissions: str):
    """
    Dependency factory to require specific permissions.

    Usage:
        @router.get("/invoices", dependencies=[Depends(require_permissions("invoices.manage"))])
        async def list_invoices():
            ...
    """
    async def permission_dependency(
        admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    ) -> AdminPrincipal:
        for permission in required_permissions:
            if not admin.has_permission(permission):
                logger.info(f"Admin {admin.id} denied: missing {permission}")
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied. Required: {permission}"
                )
        return admin

    return permission_dependency


async def get_invoice_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> InvoiceService:
    return InvoiceService(db, session_factory, settings=settings)


# Type aliases for cleaner endpoint signatures
InvoiceServiceDep = Annotated[InvoiceService, Depends(get_invoice_service)]
