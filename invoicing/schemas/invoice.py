"""Pydantic schemas for invoices and the frozen tax snapshot."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, Field

from invoicing.schemas.base import BaseResponseSchema, FrozenSchema


# ==================== Tax Snapshot ====================

class BankDetailsSnapshot(FrozenSchema):
    account_name: str
    account_number: str
    ifsc: str
    bank_name: str
    branch: str


class BusinessSnapshot(FrozenSchema):
    """Seller profile as configured when the invoice was generated."""
    name: str
    address: str
    city: str
    state: str
    state_code: Optional[str] = None
    pincode: str
    country: str
    gstin: str
    pan: str
    phone: str
    email: str
    website: str
    bank_details: BankDetailsSnapshot
    terms: Tuple[str, ...] = ()


class OrderSnapshot(FrozenSchema):
    order_id: UUID
    order_number: str
    order_date: datetime
    status: str
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None


class CustomerSnapshot(FrozenSchema):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class LineItemSnapshot(FrozenSchema):
    product_name: str
    sku: Optional[str] = None
    hsn_code: Optional[str] = None
    quantity: int
    unit: str
    unit_price: Decimal
    discounted_unit_price: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    line_total: Decimal


class AddressSnapshot(FrozenSchema):
    house_number: Optional[str] = None
    street: Optional[str] = None
    landmark: Optional[str] = None
    area: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None


class AddressesSnapshot(FrozenSchema):
    shipping: AddressSnapshot
    billing: AddressSnapshot
    billing_same_as_shipping: bool
    is_different_receiver: bool


class ReceiverSnapshot(FrozenSchema):
    name: Optional[str] = None
    phone: Optional[str] = None


class TaxComponent(FrozenSchema):
    rate: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")


class PricingSnapshot(FrozenSchema):
    subtotal: Decimal
    product_discount: Decimal
    coupon_discount: Decimal
    shipping_fee: Decimal
    taxable_amount: Decimal
    cgst: TaxComponent
    sgst: TaxComponent
    igst: TaxComponent
    total_tax: Decimal
    supply_type: str
    grand_total: Decimal
    rounding_adjustment: Decimal
    final_amount: Decimal
    amount_in_words: str


class CouponSnapshot(FrozenSchema):
    code: str
    discount_amount: Decimal
    discount_type: Optional[str] = None


class TaxSnapshot(FrozenSchema):
    """Everything needed to render an invoice without re-reading the order."""
    business: BusinessSnapshot
    order: OrderSnapshot
    customer: CustomerSnapshot
    items: Tuple[LineItemSnapshot, ...]
    addresses: AddressesSnapshot
    receiver: Optional[ReceiverSnapshot] = None
    pricing: PricingSnapshot
    coupon: Optional[CouponSnapshot] = None

    def to_storage(self) -> dict:
        """JSON-safe form persisted in ``Invoice.snapshot`` (money as strings)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls, data: dict) -> "TaxSnapshot":
        return cls.model_validate(data)


# ==================== API Responses ====================

class InvoiceGeneratedResponse(BaseModel):
    success: bool = True
    message: str = "Invoice generated successfully"
    invoice: "InvoiceBrief"


class InvoiceBrief(BaseResponseSchema):
    """Brief invoice for listing."""
    id: UUID
    invoice_number: str
    order_id: UUID
    order_number: str
    customer_name: str
    final_amount: Decimal
    generated_at: datetime
    generated_by: UUID
    state: str
    download_count: int
    last_downloaded_at: Optional[datetime] = None


class InvoiceResponse(InvoiceBrief):
    """Full invoice including the frozen snapshot."""
    snapshot: TaxSnapshot
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InvoiceDetailResponse(BaseModel):
    success: bool = True
    invoice: InvoiceResponse


class InvoiceStatusInfo(BaseResponseSchema):
    id: UUID
    invoice_number: str
    generated_at: datetime
    state: str


class InvoiceStatusResponse(BaseModel):
    success: bool = True
    exists: bool
    invoice: Optional[InvoiceStatusInfo] = None


class InvoiceListResponse(BaseModel):
    """Response for listing invoices."""
    success: bool = True
    items: List[InvoiceBrief]
    total: int
    page: int = 1
    limit: int = 10
    total_pages: int = 0


class InvoiceSequenceResponse(BaseModel):
    year: int
    current_sequence: int = Field(..., ge=0)
    next_invoice_number_preview: str


InvoiceGeneratedResponse.model_rebuild()
