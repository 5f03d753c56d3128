"""Order read model consumed by invoice generation."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AddressData(BaseModel):
    """Postal address as stored on the order."""
    model_config = ConfigDict(extra="ignore")

    house_number: Optional[str] = None
    street: Optional[str] = None
    landmark: Optional[str] = None
    area: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: str = "India"


class CustomerData(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class OrderLineData(BaseModel):
    product_name: str
    sku: Optional[str] = None
    hsn_code: Optional[str] = None
    quantity: int
    unit: str = "pcs"
    price: Decimal
    discounted_price: Optional[Decimal] = None
    gst_rate: Optional[Decimal] = None


class CouponData(BaseModel):
    code: str
    discount_amount: Decimal = Decimal("0")
    discount_type: Optional[str] = None


class OrderReadModel(BaseModel):
    """Everything the tax snapshot builder needs to know about an order."""
    id: UUID
    order_number: str
    created_at: datetime
    status: str
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None

    customer: CustomerData
    items: List[OrderLineData] = Field(default_factory=list)

    shipping_address: Optional[AddressData] = None
    billing_address: Optional[AddressData] = None
    billing_same_as_shipping: bool = True
    receiver_name: Optional[str] = None
    receiver_phone: Optional[str] = None

    coupon: Optional[CouponData] = None

    subtotal: Decimal = Decimal("0")
    total_discount: Decimal = Decimal("0")
    coupon_discount: Decimal = Decimal("0")
    shipping_fee: Decimal = Decimal("0")
