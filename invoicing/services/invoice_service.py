"""Invoice Service: generation, lookup and download of order invoices.

GENERATION FLOW:
    existence check (fast path only)
      -> load order
      -> build tax snapshot        (validation fails here, before numbering)
      -> allocate sequence         (own committed transaction, retried)
      -> format invoice number
      -> insert                    (unique indexes are the real guard)

DOWNLOAD FLOW:
    load invoice -> render from snapshot (retried) -> record download

A render failure leaves the invoice and its download count untouched.
"""
import uuid
import logging
from datetime import datetime, timezone
from math import ceil
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoicing.config import Settings, settings as default_settings
from invoicing.core.exceptions import DuplicateInvoiceError, InvoiceNotFound
from invoicing.core.retry import retry_async
from invoicing.models.invoice import Invoice
from invoicing.schemas.business import BusinessProfile
from invoicing.services.invoice_lifecycle import record_download
from invoicing.services.invoice_number import InvoiceNumberCodec
from invoicing.services.invoice_renderer import InvoiceRenderer, InvoiceRenderingGateway
from invoicing.services.invoice_repository import InvoiceRepository
from invoicing.services.order_reader import OrderReader
from invoicing.services.sequence_allocator import SequenceAllocator
from invoicing.services.tax_snapshot_builder import TaxSnapshotBuilder


logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for generating and serving order invoices."""

    def __init__(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        renderer: Optional[InvoiceRenderer] = None,
        codec: Optional[InvoiceNumberCodec] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.repository = InvoiceRepository(db)
        self.orders = OrderReader(db)
        self.allocator = SequenceAllocator(session_factory)
        self.codec = codec or InvoiceNumberCodec(prefix=self.settings.INVOICE_PREFIX)
        self.gateway = InvoiceRenderingGateway(renderer)

    @property
    def business(self) -> BusinessProfile:
        # Re-read per call so a settings reload applies to the next invoice
        return BusinessProfile.from_settings(self.settings)

    def numbering_year(self, moment: datetime) -> int:
        """Calendar year of ``moment`` in the business timezone."""
        return moment.astimezone(ZoneInfo(self.settings.BUSINESS_TIMEZONE)).year

    # ==================== GENERATION ====================

    async def generate_invoice(
        self,
        order_id: uuid.UUID,
        actor_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> Invoice:
        """
        Generate the invoice for an order.

        Args:
            order_id: Order to invoice
            actor_id: Admin user generating the invoice
            year: Sequence year (defaults to the generation year in BUSINESS_TIMEZONE)

        Raises:
            DuplicateInvoiceError: Order already has an invoice
            OrderNotFound: No such order
            IncompleteOrderData: Order lacks data required on a tax invoice
            SequenceAllocationError: Counter storage unavailable after retries
        """
        existing = await self.repository.get_by_order(order_id)
        if existing is not None:
            logger.info(f"Invoice {existing.invoice_number} already exists for order {order_id}")
            raise DuplicateInvoiceError(
                existing_invoice_number=existing.invoice_number,
                order_id=str(order_id),
            )

        order = await self.orders.get_order(order_id)
        snapshot = TaxSnapshotBuilder(self.business).build(order)

        generated_at = datetime.now(timezone.utc)
        sequence_year = year if year is not None else self.numbering_year(generated_at)

        sequence = await retry_async(
            lambda: self.allocator.next_sequence(sequence_year),
            attempts=self.settings.SEQUENCE_RETRY_ATTEMPTS,
            backoff_seconds=self.settings.RETRY_BACKOFF_SECONDS,
            operation=f"Sequence allocation for {sequence_year}",
        )
        invoice_number = self.codec.format(sequence_year, sequence)

        invoice = await self.repository.create_if_absent(
            order_id=order.id,
            order_number=order.order_number,
            invoice_number=invoice_number,
            snapshot=snapshot,
            actor=actor_id,
            generated_at=generated_at,
        )

        logger.info(
            f"Generated invoice {invoice_number} for order {order.order_number} "
            f"by {actor_id} (final amount {snapshot.pricing.final_amount})"
        )
        return invoice

    # ==================== LOOKUP ====================

    async def get_status(self, order_id: uuid.UUID) -> Optional[Invoice]:
        """Invoice for the order, or None when none has been generated."""
        return await self.repository.get_by_order(order_id)

    async def get_by_order(self, order_id: uuid.UUID) -> Invoice:
        invoice = await self.repository.get_by_order(order_id)
        if invoice is None:
            raise InvoiceNotFound("Invoice not found for this order", order_id=str(order_id))
        return invoice

    async def get_by_number(self, invoice_number: str) -> Invoice:
        """
        Raises:
            MalformedInvoiceNumber: Before any lookup, if the format is wrong
            InvoiceNotFound: Well-formed but unknown number
        """
        self.codec.parse(invoice_number)
        invoice = await self.repository.get_by_number(invoice_number)
        if invoice is None:
            raise InvoiceNotFound(invoice_number=invoice_number)
        return invoice

    async def list_invoices(
        self,
        page: int = 1,
        limit: int = 10,
        state: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Invoice], int, int]:
        """Paginated invoices; returns (items, total, total_pages)."""
        items, total = await self.repository.list_invoices(
            page=page,
            limit=limit,
            state=state,
            start_date=start_date,
            end_date=end_date,
            search=search,
        )
        return items, total, ceil(total / limit) if limit else 0

    # ==================== DOWNLOAD ====================

    async def _render_and_record(self, invoice: Invoice) -> bytes:
        content = await retry_async(
            lambda: self.gateway.render(invoice),
            attempts=self.settings.RENDER_RETRY_ATTEMPTS,
            backoff_seconds=self.settings.RETRY_BACKOFF_SECONDS,
            operation=f"Rendering invoice {invoice.invoice_number}",
        )

        await record_download(self.db, invoice)

        logger.info(
            f"Invoice {invoice.invoice_number} downloaded "
            f"(count {invoice.download_count}, state {invoice.state})"
        )
        return content

    async def download_by_order(self, order_id: uuid.UUID) -> Tuple[Invoice, bytes]:
        invoice = await self.get_by_order(order_id)
        return invoice, await self._render_and_record(invoice)

    async def download_by_number(self, invoice_number: str) -> Tuple[Invoice, bytes]:
        invoice = await self.get_by_number(invoice_number)
        return invoice, await self._render_and_record(invoice)

    # ==================== SEQUENCE ====================

    async def preview_invoice_number(self, year: int) -> str:
        """The shape of the next number for ``year``; nothing is consumed."""
        current = await self.allocator.current_sequence(year)
        return self.codec.format(year, current + 1)

    async def sequence_info(self, year: int) -> Dict[str, Any]:
        current = await self.allocator.current_sequence(year)
        return {
            "year": year,
            "current_sequence": current,
            "next_invoice_number_preview": await self.preview_invoice_number(year),
        }
