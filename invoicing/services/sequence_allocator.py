"""
Sequence allocator for invoice numbering.

One counter row per calendar year. Allocation is a single statement:

    INSERT INTO invoice_counters (year, sequence) VALUES (:year, 1)
    ON CONFLICT (year) DO UPDATE SET sequence = invoice_counters.sequence + 1
    RETURNING sequence

so two concurrent callers can never observe the same value, and the row is
created on first use without a separate existence check. The statement runs
in its own short transaction (committed immediately) so the counter row lock
is never held across snapshot building or the invoice insert. A number burned
by a later failure is an accepted gap.

OPERATIONAL CONSTRAINT:
    reset_sequence() is an administrative operation for maintenance windows
    only. A reset that races an in-flight allocation for the same year can
    re-issue an already used sequence; the unique index on
    invoices.invoice_number then rejects the duplicate insert.

USAGE:
    allocator = SequenceAllocator(async_session_factory)
    seq = await allocator.next_sequence(2026)   # 1, 2, 3, ...
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoicing.core.exceptions import SequenceAllocationError
from invoicing.models.invoice_counter import InvoiceCounter


logger = logging.getLogger(__name__)

MIN_YEAR = 1
MAX_YEAR = 9999


def _validate_year(year: int) -> int:
    if isinstance(year, bool) or not isinstance(year, int):
        raise ValueError(f"Year must be an integer, got {year!r}")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}, got {year}")
    return year


class SequenceAllocator:
    """Issues strictly increasing per-year invoice sequences."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _upsert(dialect_name: str, year: int, initial: int, increment: bool):
        """Build the dialect-specific atomic upsert returning the new sequence."""
        if dialect_name == "postgresql":
            insert = postgresql.insert
        elif dialect_name == "sqlite":
            insert = sqlite.insert
        else:
            raise SequenceAllocationError(
                f"Atomic counter upsert is not supported on '{dialect_name}'",
                year=year,
            )

        now = datetime.now(timezone.utc)
        stmt = insert(InvoiceCounter).values(
            year=year,
            sequence=initial,
            created_at=now,
            updated_at=now,
        )
        new_sequence = InvoiceCounter.sequence + 1 if increment else initial
        return stmt.on_conflict_do_update(
            index_elements=[InvoiceCounter.year],
            set_={"sequence": new_sequence, "updated_at": now},
        ).returning(InvoiceCounter.sequence)

    async def _execute_upsert(self, year: int, initial: int, increment: bool, operation: str) -> int:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    dialect_name = session.bind.dialect.name
                    result = await session.execute(
                        self._upsert(dialect_name, year, initial, increment)
                    )
                    return result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Invoice counter {operation} failed for year {year}: {e}")
            raise SequenceAllocationError(
                "Invoice sequence storage is unavailable",
                year=year,
            ) from e

    async def next_sequence(self, year: int) -> int:
        """
        Atomically increment and return the sequence for ``year``.

        Raises:
            ValueError: If year is out of range
            SequenceAllocationError: If the counter storage fails (retryable)
        """
        _validate_year(year)
        sequence = await self._execute_upsert(year, initial=1, increment=True, operation="allocation")
        logger.info(f"Allocated invoice sequence {sequence} for year {year}")
        return sequence

    async def current_sequence(self, year: int) -> int:
        """Last issued sequence for ``year`` without incrementing (0 if none)."""
        _validate_year(year)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(InvoiceCounter.sequence).where(InvoiceCounter.year == year)
                )
                return result.scalar_one_or_none() or 0
        except SQLAlchemyError as e:
            raise SequenceAllocationError(
                "Invoice sequence storage is unavailable",
                year=year,
            ) from e

    async def reset_sequence(self, year: int) -> int:
        """
        Reset the counter for ``year`` to 0 (creates the row if missing).

        Maintenance windows only, see module docstring.
        """
        _validate_year(year)
        sequence = await self._execute_upsert(year, initial=0, increment=False, operation="reset")
        logger.warning(f"Invoice sequence for year {year} reset to {sequence}")
        return sequence
