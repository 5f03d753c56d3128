"""
Invoicing error taxonomy.

Every failure the invoicing subsystem surfaces is an ``InvoicingError``.
The API layer maps ``status_code`` straight onto the HTTP response, and
``retryable`` tells callers whether a second attempt can succeed.
"""
from typing import Any, Dict, Optional


class InvoicingError(Exception):
    """Base class for invoicing failures."""

    status_code: int = 500
    error_code: str = "INVOICING_ERROR"
    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
        }
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class OrderNotFound(InvoicingError):
    status_code = 404
    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: Any):
        super().__init__("Order not found", order_id=str(order_id))


class InvoiceNotFound(InvoicingError):
    status_code = 404
    error_code = "INVOICE_NOT_FOUND"

    def __init__(self, message: str = "Invoice not found", **context: Any):
        super().__init__(message, **context)


class IncompleteOrderData(InvoicingError):
    """Order is missing fields a tax invoice cannot be issued without."""

    status_code = 422
    error_code = "INCOMPLETE_ORDER_DATA"

    def __init__(self, order_number: str, missing_fields: list[str]):
        super().__init__(
            f"Order {order_number} is missing required invoice data: {', '.join(missing_fields)}",
            order_number=order_number,
            missing_fields=missing_fields,
        )
        self.missing_fields = missing_fields


class DuplicateInvoiceError(InvoicingError):
    """An invoice already exists for this order (or this invoice number is taken)."""

    status_code = 409
    error_code = "DUPLICATE_INVOICE"

    def __init__(
        self,
        message: str = "Invoice already exists for this order",
        existing_invoice_number: Optional[str] = None,
        **context: Any,
    ):
        super().__init__(message, existing_invoice_number=existing_invoice_number, **context)
        self.existing_invoice_number = existing_invoice_number


class MalformedInvoiceNumber(InvoicingError):
    status_code = 400
    error_code = "MALFORMED_INVOICE_NUMBER"

    def __init__(self, invoice_number: str):
        super().__init__(
            f"Invalid invoice number format: {invoice_number!r}",
            invoice_number=invoice_number,
        )


class InvalidInvoiceTransition(InvoicingError):
    status_code = 409
    error_code = "INVALID_INVOICE_TRANSITION"


class SequenceAllocationError(InvoicingError):
    """Counter storage was unavailable while issuing the next sequence."""

    status_code = 503
    error_code = "SEQUENCE_ALLOCATION_FAILED"
    retryable = True


class RenderingError(InvoicingError):
    """Document rendering failed. The persisted invoice is unaffected."""

    status_code = 502
    error_code = "RENDERING_FAILED"
    retryable = True
