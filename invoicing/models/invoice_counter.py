"""
Invoice sequence counter.

One row per calendar year. The row is created lazily by the first
allocation of the year and incremented with a single atomic upsert
(see ``invoicing.services.sequence_allocator``).

Example:
    year = 2026
    sequence = 42
    → next invoice number: INV_K7Q2_0043
"""
from datetime import datetime, timezone

from sqlalchemy import Integer, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from invoicing.database import Base


class InvoiceCounter(Base):
    """Per-year invoice sequence counter."""
    __tablename__ = "invoice_counters"
    __table_args__ = (
        CheckConstraint("sequence >= 0", name="ck_invoice_counter_sequence_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    year: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        nullable=False,
        comment="Calendar year the sequence belongs to"
    )
    sequence: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last issued sequence number"
    )

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

    def __repr__(self) -> str:
        return f"<InvoiceCounter({self.year}: {self.sequence})>"
