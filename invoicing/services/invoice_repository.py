"""
Invoice persistence.

create_if_absent() flushes the insert immediately so the unique indexes on
``order_id`` and ``invoice_number`` are checked inside the call. Two requests
racing past the service's existence check both reach the insert; the loser
gets an IntegrityError which is translated to DuplicateInvoiceError here.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import DuplicateInvoiceError
from invoicing.models.invoice import Invoice, InvoiceState
from invoicing.schemas.invoice import TaxSnapshot


logger = logging.getLogger(__name__)


class InvoiceRepository:
    """Storage access for invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_if_absent(
        self,
        order_id: uuid.UUID,
        order_number: str,
        invoice_number: str,
        snapshot: TaxSnapshot,
        actor: uuid.UUID,
        generated_at: Optional[datetime] = None,
    ) -> Invoice:
        """
        Insert a new invoice for ``order_id``.

        Raises:
            DuplicateInvoiceError: If the order already has an invoice or the
                invoice number is taken. The session transaction is rolled
                back in that case.
        """
        invoice = Invoice(
            invoice_number=invoice_number,
            order_id=order_id,
            order_number=order_number,
            generated_at=generated_at or datetime.now(timezone.utc),
            generated_by=actor,
            snapshot=snapshot.to_storage(),
            customer_name=snapshot.customer.name,
            final_amount=snapshot.pricing.final_amount,
            state=InvoiceState.GENERATED.value,
            download_count=0,
        )
        self.db.add(invoice)

        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            existing = await self.get_by_order(order_id)
            if existing is not None:
                logger.warning(
                    f"Duplicate invoice for order {order_number} rejected, "
                    f"existing {existing.invoice_number}"
                )
                raise DuplicateInvoiceError(
                    existing_invoice_number=existing.invoice_number,
                    order_id=str(order_id),
                ) from e

            logger.warning(f"Invoice number {invoice_number} already issued: {e.orig}")
            raise DuplicateInvoiceError(
                f"Invoice number {invoice_number} is already in use",
                invoice_number=invoice_number,
            ) from e

        logger.info(f"Created invoice {invoice_number} for order {order_number}")
        return invoice

    async def get_by_id(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        result = await self.db.execute(select(Invoice).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none()

    async def get_by_order(self, order_id: uuid.UUID) -> Optional[Invoice]:
        result = await self.db.execute(select(Invoice).where(Invoice.order_id == order_id))
        return result.scalar_one_or_none()

    async def get_by_number(self, invoice_number: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        )
        return result.scalar_one_or_none()

    async def exists_for_order(self, order_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(func.count(Invoice.id)).where(Invoice.order_id == order_id)
        )
        return (result.scalar() or 0) > 0

    async def list_invoices(
        self,
        page: int = 1,
        limit: int = 10,
        state: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Invoice], int]:
        """Get paginated invoices, newest first."""
        filters = []

        if state:
            filters.append(Invoice.state == state)

        if start_date:
            filters.append(Invoice.generated_at >= start_date)

        if end_date:
            filters.append(Invoice.generated_at <= end_date)

        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    Invoice.invoice_number.ilike(search_filter),
                    Invoice.order_number.ilike(search_filter),
                    Invoice.customer_name.ilike(search_filter),
                )
            )

        # Count
        count_stmt = select(func.count(Invoice.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = select(Invoice)
        if filters:
            stmt = stmt.where(and_(*filters))
        stmt = (
            stmt.order_by(Invoice.generated_at.desc(), Invoice.invoice_number.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)

        return list(result.scalars().all()), total
