"""Loads orders into the read model used for invoice generation."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import OrderNotFound
from invoicing.models.order import Order
from invoicing.schemas.order import (
    OrderReadModel, CustomerData, OrderLineData, AddressData, CouponData,
)


logger = logging.getLogger(__name__)


def _address(data) -> AddressData | None:
    if not data:
        return None
    return AddressData.model_validate(data)


def to_read_model(order: Order) -> OrderReadModel:
    """Map an Order row (customer and items loaded) to the read model."""
    coupon = None
    if order.coupon_code:
        coupon = CouponData(
            code=order.coupon_code,
            discount_amount=order.coupon_discount or 0,
            discount_type=order.coupon_discount_type,
        )

    customer = order.customer
    return OrderReadModel(
        id=order.id,
        order_number=order.order_number,
        created_at=order.created_at,
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        customer=CustomerData(
            name=customer.name if customer else None,
            email=customer.email if customer else None,
            phone=customer.phone if customer else None,
        ),
        items=[
            OrderLineData(
                product_name=item.product_name,
                sku=item.product_sku,
                hsn_code=item.hsn_code,
                quantity=item.quantity,
                unit=item.unit or "pcs",
                price=item.unit_price,
                discounted_price=item.discounted_price,
                gst_rate=item.tax_rate,
            )
            for item in order.items
        ],
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        billing_same_as_shipping=order.billing_same_as_shipping,
        receiver_name=order.receiver_name,
        receiver_phone=order.receiver_phone,
        coupon=coupon,
        subtotal=order.subtotal,
        total_discount=order.discount_amount or 0,
        coupon_discount=order.coupon_discount or 0,
        shipping_fee=order.shipping_amount or 0,
    )


class OrderReader:
    """Read-only access to storefront orders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_id: uuid.UUID) -> OrderReadModel:
        """
        Load an order with its customer and items.

        Raises:
            OrderNotFound: If no order has this id
        """
        stmt = (
            select(Order)
            .options(
                selectinload(Order.customer),
                selectinload(Order.items),
            )
            .where(Order.id == order_id)
        )
        result = await self.db.execute(stmt)
        order = result.scalar_one_or_none()
        if order is None:
            logger.info(f"Order {order_id} not found for invoicing")
            raise OrderNotFound(order_id)
        return to_read_model(order)
