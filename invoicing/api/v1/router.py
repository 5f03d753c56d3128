from fastapi import APIRouter

from invoicing.api.v1.endpoints import invoices


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Order Invoices (Admin) ====================
api_router.include_router(
    invoices.router,
    prefix="/admin",
    tags=["Invoices"]
)
