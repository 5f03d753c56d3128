"""
Invoice model.

An invoice is issued exactly once per order and is never deleted in normal
operation. Everything printed on the document lives in ``snapshot``: a frozen
copy of the order, customer, business profile and GST computation taken at
generation time. The PDF itself is never stored; it is re-rendered from the
snapshot on every download.

UNIQUENESS:
    • uq_invoices_order_id        - one invoice per order
    • uq_invoices_invoice_number  - invoice numbers are global

These constraints are the real guard against concurrent generation; the
service-level existence check is only a fast path.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    String, Integer, DateTime, ForeignKey, Numeric, Text,
    UniqueConstraint, CheckConstraint, Index, inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from invoicing.database import Base
from invoicing.db_types import JSONType, UUIDType


class InvoiceState(str, Enum):
    """Invoice lifecycle state."""
    GENERATED = "GENERATED"
    DOWNLOADED = "DOWNLOADED"
    SENT = "SENT"  # Reserved for email delivery


# Fields that may only be assigned while the invoice is being created
WRITE_ONCE_FIELDS = (
    "invoice_number",
    "order_id",
    "order_number",
    "generated_at",
    "generated_by",
    "snapshot",
    "customer_name",
    "final_amount",
)


class Invoice(Base):
    """Tax invoice issued for a storefront order."""
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("order_id", name="uq_invoices_order_id"),
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        CheckConstraint("download_count >= 0", name="ck_invoices_download_count_non_negative"),
        Index("ix_invoices_generated_at", "generated_at"),
        Index("ix_invoices_state_generated_at", "state", "generated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    invoice_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="INV_XXXX_0001"
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False
    )
    order_number: Mapped[str] = mapped_column(String(30), nullable=False)

    # Generation audit
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    generated_by: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        comment="Admin user who generated the invoice"
    )

    # Frozen tax snapshot (see invoicing.schemas.invoice.TaxSnapshot)
    snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)

    # Denormalised from the snapshot for listing
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Lifecycle
    state: Mapped[str] = mapped_column(
        String(20),
        default=InvoiceState.GENERATED.value,
        nullable=False
    )
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_downloaded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @validates(*WRITE_ONCE_FIELDS)
    def _validate_write_once(self, key, value):
        if inspect(self).has_identity:
            raise ValueError(f"Invoice.{key} is immutable once the invoice is persisted")
        return value

    def __repr__(self) -> str:
        return f"<Invoice(invoice_number='{self.invoice_number}', state='{self.state}')>"
