"""
Tax snapshot builder.

Turns an order read model plus the business profile into the immutable
``TaxSnapshot`` stored on the invoice. Arithmetic lives in
``invoicing.services.gst``; this module validates the order, decides the
supply type and copies every printed field verbatim so that later order
edits can never change an issued invoice.
"""
import logging
from typing import List

from invoicing.core.exceptions import IncompleteOrderData
from invoicing.schemas.business import BusinessProfile
from invoicing.schemas.invoice import (
    TaxSnapshot, BusinessSnapshot, BankDetailsSnapshot, OrderSnapshot,
    CustomerSnapshot, LineItemSnapshot, AddressSnapshot, AddressesSnapshot,
    ReceiverSnapshot, PricingSnapshot, TaxComponent, CouponSnapshot,
)
from invoicing.schemas.order import OrderReadModel, AddressData
from invoicing.services.amount_words import amount_to_words
from invoicing.services.gst import (
    LineInput, compute_pricing, determine_supply_type,
    state_code_for, state_code_from_gstin,
)


logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("city", "state", "pincode")


def _missing_address_fields(prefix: str, address: AddressData | None) -> List[str]:
    if address is None:
        return [prefix]
    return [
        f"{prefix}.{field}"
        for field in REQUIRED_ADDRESS_FIELDS
        if not (getattr(address, field) or "").strip()
    ]


def _address_snapshot(address: AddressData) -> AddressSnapshot:
    return AddressSnapshot(**address.model_dump())


class TaxSnapshotBuilder:
    """Builds frozen GST snapshots from orders."""

    def __init__(self, business: BusinessProfile):
        self.business = business

    @property
    def seller_state_code(self) -> str | None:
        return (
            self.business.state_code
            or state_code_from_gstin(self.business.gstin)
            or state_code_for(self.business.state)
        )

    def validate(self, order: OrderReadModel) -> None:
        """
        Check the order carries everything a tax invoice needs.

        Raises:
            IncompleteOrderData: listing every missing field
        """
        missing: List[str] = []

        if not (order.customer.name or "").strip():
            missing.append("customer.name")

        missing.extend(_missing_address_fields("shipping_address", order.shipping_address))
        if not order.billing_same_as_shipping:
            missing.extend(_missing_address_fields("billing_address", order.billing_address))

        for index, item in enumerate(order.items):
            if item.quantity <= 0:
                missing.append(f"items[{index}].quantity")

        if missing:
            raise IncompleteOrderData(order.order_number, missing)

    def build(self, order: OrderReadModel) -> TaxSnapshot:
        """
        Build the snapshot for ``order``.

        Raises:
            IncompleteOrderData: If required customer/address data is missing
        """
        self.validate(order)

        business = self.business
        destination_state = order.shipping_address.state
        seller_state = self.seller_state_code or business.state
        supply_type = determine_supply_type(
            seller_state, destination_state, seller_state_name=business.state
        )

        pricing = compute_pricing(
            lines=[
                LineInput(
                    quantity=item.quantity,
                    price=item.price,
                    discounted_price=item.discounted_price,
                    gst_rate=item.gst_rate,
                )
                for item in order.items
            ],
            subtotal=order.subtotal,
            product_discount=order.total_discount,
            coupon_discount=order.coupon_discount,
            shipping_fee=order.shipping_fee,
            default_rate=business.default_gst_rate,
            supply_type=supply_type,
        )

        items = tuple(
            LineItemSnapshot(
                product_name=item.product_name,
                sku=item.sku,
                hsn_code=item.hsn_code,
                quantity=line.quantity,
                unit=item.unit,
                unit_price=line.unit_price,
                discounted_unit_price=line.discounted_unit_price,
                tax_rate=line.tax_rate,
                tax_amount=line.tax_amount,
                line_total=line.line_total,
            )
            for item, line in zip(order.items, pricing.lines)
        )

        shipping = _address_snapshot(order.shipping_address)
        billing = (
            shipping
            if order.billing_same_as_shipping
            else _address_snapshot(order.billing_address)
        )
        is_different_receiver = bool(order.receiver_name or order.receiver_phone)

        split = pricing.split
        snapshot = TaxSnapshot(
            business=BusinessSnapshot(
                name=business.name,
                address=business.address,
                city=business.city,
                state=business.state,
                state_code=self.seller_state_code,
                pincode=business.pincode,
                country=business.country,
                gstin=business.gstin,
                pan=business.pan,
                phone=business.phone,
                email=business.email,
                website=business.website,
                bank_details=BankDetailsSnapshot(**business.bank_details.model_dump()),
                terms=tuple(business.terms),
            ),
            order=OrderSnapshot(
                order_id=order.id,
                order_number=order.order_number,
                order_date=order.created_at,
                status=order.status,
                payment_method=order.payment_method,
                payment_status=order.payment_status,
            ),
            customer=CustomerSnapshot(
                name=order.customer.name,
                email=order.customer.email,
                phone=order.customer.phone,
            ),
            items=items,
            addresses=AddressesSnapshot(
                shipping=shipping,
                billing=billing,
                billing_same_as_shipping=order.billing_same_as_shipping,
                is_different_receiver=is_different_receiver,
            ),
            receiver=(
                ReceiverSnapshot(name=order.receiver_name, phone=order.receiver_phone)
                if is_different_receiver
                else None
            ),
            pricing=PricingSnapshot(
                subtotal=pricing.subtotal,
                product_discount=pricing.product_discount,
                coupon_discount=pricing.coupon_discount,
                shipping_fee=pricing.shipping_fee,
                taxable_amount=pricing.taxable_amount,
                cgst=TaxComponent(rate=split.cgst_rate, amount=split.cgst_amount),
                sgst=TaxComponent(rate=split.sgst_rate, amount=split.sgst_amount),
                igst=TaxComponent(rate=split.igst_rate, amount=split.igst_amount),
                total_tax=pricing.total_tax,
                supply_type=pricing.supply_type.value,
                grand_total=pricing.grand_total,
                rounding_adjustment=pricing.rounding_adjustment,
                final_amount=pricing.final_amount,
                amount_in_words=amount_to_words(pricing.final_amount),
            ),
            coupon=(
                CouponSnapshot(
                    code=order.coupon.code,
                    discount_amount=order.coupon_discount,
                    discount_type=order.coupon.discount_type,
                )
                if order.coupon
                else None
            ),
        )

        logger.debug(
            f"Built tax snapshot for order {order.order_number}: "
            f"{pricing.supply_type.value}, tax {pricing.total_tax}, final {pricing.final_amount}"
        )
        return snapshot
