"""API endpoints for order invoices (admin)."""
from typing import Optional
from uuid import UUID
from datetime import date, datetime, time, timezone

from fastapi import APIRouter, Depends, Path, Query, Response, status

from invoicing.api.deps import AdminPrincipal, InvoiceServiceDep, require_permissions
from invoicing.models.invoice import Invoice, InvoiceState
from invoicing.schemas.invoice import (
    InvoiceBrief, InvoiceDetailResponse, InvoiceGeneratedResponse, InvoiceListResponse,
    InvoiceResponse, InvoiceSequenceResponse, InvoiceStatusInfo, InvoiceStatusResponse,
)


router = APIRouter()


def _pdf_response(invoice: Invoice, content: bytes) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="Invoice_{invoice.invoice_number}.pdf"',
            "Content-Length": str(len(content)),
        },
    )


# ==================== Generation ====================

@router.post(
    "/invoice/{order_id}/generate",
    response_model=InvoiceGeneratedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_invoice(
    order_id: UUID,
    service: InvoiceServiceDep,
    admin: AdminPrincipal = Depends(require_permissions("invoices.generate")),
):
    """Generate the invoice for an order. Returns 409 if one already exists."""
    invoice = await service.generate_invoice(order_id, admin.id)
    return InvoiceGeneratedResponse(invoice=InvoiceBrief.model_validate(invoice))


# ==================== Lookup ====================

@router.get("/invoice/{order_id}/status", response_model=InvoiceStatusResponse)
async def get_invoice_status(
    order_id: UUID,
    service: InvoiceServiceDep,
    admin: AdminPrincipal = Depends(require_permissions("invoices.view")),
):
    """Whether an invoice exists for the order."""
    invoice = await service.get_status(order_id)
    if invoice is None:
        return InvoiceStatusResponse(exists=False)
    return InvoiceStatusResponse(exists=True, invoice=InvoiceStatusInfo.model_validate(invoice))


@router.get("/invoice/details/{invoice_number}", response_model=InvoiceDetailResponse)
async def get_invoice_by_number(
    invoice_number: str,
    service: InvoiceServiceDep,
    admin: AdminPrincipal = Depends(require_permissions("invoices.view")),
):
    invoice = await service.get_by_number(invoice_number)
    return InvoiceDetailResponse(invoice=InvoiceResponse.model_validate(invoice))


@router.get("/invoice/{order_id}", response_model=InvoiceDetailResponse)
async def get_invoice_by_order(
    order_id: UUID,
    service: InvoiceServiceDep,
    admin: AdminPrincipal = Depends(require_permissions("invoices.view")),
):
    invoice = await service.get_by_order(order_id)
    return InvoiceDetailResponse(invoice=InvoiceResponse.model_validate(invoice))


@router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    service: InvoiceServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    state: Optional[InvoiceState] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    admin: AdminPrincipal = Depends(require_permissions("invoices.manage")),
):
    """List invoices, newest first. Date filters are inclusive whole days (UTC)."""
    items, total, total_pages = await service.list_invoices(
        page=page,
        limit=limit,
        state=state.value if state else None,
        start_date=datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None,
        end_date=datetime.combine(end_date, time.max, tzinfo=timezone.utc) if end_date else None,
        search=search,
    )
    return InvoiceListResponse(
        items=[InvoiceBrief.model_validate(inv) for inv in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


# ==================== Download ====================

@router.get("/invoice/{order_id}/download", response_class=Response)
async def download_invoice_by_order(
    order_id: UUID,
    service: InvoiceServiceDep,
    admin: AdminPrincipal = Depends(require_permissions("invoices.download")),
):
    """Render the order's invoice PDF from its stored snapshot."""
    invoice, content = await service.download_by_order(order_id)
    return _pdf_response(invoice, content)


@router.get("/invoice/pdf/{invoice_number}", response_class=Response)
async def download_invoice_by_number(
    invoice_number: str,
    service: InvoiceServiceDep,
    admin: AdminPrincipal = Depends(require_permissions("invoices.download")),
):
    invoice, content = await service.download_by_number(invoice_number)
    return _pdf_response(invoice, content)


# ==================== Sequence ====================

@router.get("/invoice-sequence/{year}", response_model=InvoiceSequenceResponse)
async def get_invoice_sequence(
    service: InvoiceServiceDep,
    year: int = Path(..., ge=1, le=9999),
    admin: AdminPrincipal = Depends(require_permissions("invoices.manage")),
):
    """Last issued sequence for the year and a preview of the next number."""
    return InvoiceSequenceResponse(**await service.sequence_info(year))
