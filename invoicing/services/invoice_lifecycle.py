"""
Invoice State Machine

All invoice state changes go through this module.

Lifecycle:
    GENERATED -> DOWNLOADED -> SENT

An invoice never returns to GENERATED. SENT is reserved for email delivery;
nothing in this service moves an invoice there yet.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from invoicing.core.exceptions import InvalidInvoiceTransition
from invoicing.models.invoice import Invoice, InvoiceState


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_state -> [list of allowed next states]
INVOICE_TRANSITIONS: Dict[str, List[str]] = {
    InvoiceState.GENERATED.value: [
        InvoiceState.DOWNLOADED.value,  # First download
        InvoiceState.SENT.value,        # Emailed before anyone downloaded it
    ],
    InvoiceState.DOWNLOADED.value: [
        InvoiceState.DOWNLOADED.value,  # Downloaded again
        InvoiceState.SENT.value,
    ],
    InvoiceState.SENT.value: [
        InvoiceState.SENT.value,        # Re-download keeps SENT
    ],
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_state: str, new_state: str) -> bool:
    """Check if a transition is allowed."""
    return new_state in INVOICE_TRANSITIONS.get(current_state, [])


def get_allowed_transitions(current_state: str) -> List[str]:
    return INVOICE_TRANSITIONS.get(current_state, [])


def validate_transition(current_state: str, new_state: str) -> None:
    """
    Validate a state transition.

    Raises:
        InvalidInvoiceTransition: If the move is not in INVOICE_TRANSITIONS
    """
    if not can_transition(current_state, new_state):
        allowed = get_allowed_transitions(current_state)
        raise InvalidInvoiceTransition(
            f"Cannot change invoice from '{current_state}' to '{new_state}'. "
            f"Allowed transitions: {', '.join(allowed) or 'none'}",
            current_state=current_state,
            requested_state=new_state,
        )


def state_after_download(current_state: str) -> str:
    """GENERATED becomes DOWNLOADED; later states are kept."""
    if current_state == InvoiceState.GENERATED.value:
        return InvoiceState.DOWNLOADED.value
    return current_state


async def record_download(
    db: AsyncSession,
    invoice: Invoice,
    now: Optional[datetime] = None,
) -> Invoice:
    """
    Register one successful download of ``invoice``.

    The increment and state move run as a single UPDATE so overlapping
    downloads of the same invoice are each counted. ``invoice`` is refreshed
    from the returned row.

    Raises:
        InvalidInvoiceTransition: If the invoice's state does not allow a download
    """
    validate_transition(invoice.state, state_after_download(invoice.state))

    downloaded_at = now or datetime.now(timezone.utc)
    stmt = (
        update(Invoice)
        .where(Invoice.id == invoice.id)
        .values(
            download_count=Invoice.download_count + 1,
            last_downloaded_at=downloaded_at,
            state=case(
                (Invoice.state == InvoiceState.GENERATED.value, InvoiceState.DOWNLOADED.value),
                else_=Invoice.state,
            ),
            updated_at=downloaded_at,
        )
        .returning(Invoice.download_count, Invoice.last_downloaded_at, Invoice.state)
        .execution_options(synchronize_session=False)
    )
    row = (await db.execute(stmt)).one()

    set_committed_value(invoice, "download_count", row.download_count)
    set_committed_value(invoice, "last_downloaded_at", row.last_downloaded_at)
    set_committed_value(invoice, "state", row.state)
    return invoice
