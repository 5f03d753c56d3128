# Services module
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.invoice_repository import InvoiceRepository
from invoicing.services.order_reader import OrderReader
from invoicing.services.sequence_allocator import SequenceAllocator
from invoicing.services.tax_snapshot_builder import TaxSnapshotBuilder

# Numbering & rendering
from invoicing.services.invoice_number import InvoiceNumberCodec
from invoicing.services.invoice_renderer import (
    InvoiceRenderer,
    InvoiceRenderingGateway,
    ReportLabInvoiceRenderer,
)

__all__ = [
    "InvoiceService",
    "InvoiceRepository",
    "OrderReader",
    "SequenceAllocator",
    "TaxSnapshotBuilder",
    # Numbering & rendering
    "InvoiceNumberCodec",
    "InvoiceRenderer",
    "InvoiceRenderingGateway",
    "ReportLabInvoiceRenderer",
]
