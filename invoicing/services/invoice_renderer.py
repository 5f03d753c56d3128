"""
Invoice rendering.

The PDF is never stored. Every download re-renders it from the invoice's
frozen snapshot:

    snapshot -> build_template_data() -> InvoiceRenderer.render() -> bytes

``build_template_data`` turns the snapshot into flat display strings
(Indian digit grouping, dd/mm/YYYY dates); renderers only lay them out.
"""
import asyncio
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from io import BytesIO
from typing import Any, Dict, List, Protocol
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from invoicing.core.exceptions import RenderingError
from invoicing.models.invoice import Invoice
from invoicing.schemas.invoice import AddressSnapshot, TaxSnapshot


logger = logging.getLogger(__name__)

CURRENCY_SYMBOL = "₹"
DATE_FORMAT = "%d/%m/%Y"


# ==================== Formatting ====================

def group_indian(digits: str) -> str:
    """Group an unsigned integer string the Indian way: 12,34,567."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_inr(amount: Any, symbol: bool = True) -> str:
    """1234567.5 -> '₹12,34,567.50'."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    rupees, paise = f"{abs(value):.2f}".split(".")
    prefix = CURRENCY_SYMBOL if symbol else ""
    return f"{sign}{prefix}{group_indian(rupees)}.{paise}"


def format_rate(rate: Any) -> str:
    """Decimal('9.00') -> '9%', Decimal('2.50') -> '2.5%'."""
    value = Decimal(str(rate)).normalize()
    return f"{value:f}%"


def format_date(value: datetime | None) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def format_address(address: AddressSnapshot | None) -> str:
    if address is None:
        return ""
    street = ", ".join(
        part for part in (address.house_number, address.street, address.landmark, address.area) if part
    )
    locality = ", ".join(part for part in (address.city, address.state) if part)
    if address.pincode:
        locality = f"{locality} - {address.pincode}" if locality else address.pincode
    return "\n".join(part for part in (street, locality, address.country) if part)


def build_template_data(invoice_number: str, generated_at: datetime, snapshot: TaxSnapshot) -> Dict[str, Any]:
    """Flatten a snapshot into the display record renderers consume."""
    business = snapshot.business
    pricing = snapshot.pricing
    intra_state = pricing.supply_type == "INTRA_STATE"

    items: List[Dict[str, str]] = []
    for index, item in enumerate(snapshot.items, start=1):
        items.append({
            "serial": str(index),
            "product_name": item.product_name,
            "sku": item.sku or "",
            "hsn_code": item.hsn_code or "",
            "quantity": f"{item.quantity} {item.unit}",
            "unit_price": format_inr(item.unit_price),
            "discounted_unit_price": format_inr(item.discounted_unit_price),
            "tax_rate": format_rate(item.tax_rate),
            "tax_amount": format_inr(item.tax_amount),
            "line_total": format_inr(item.line_total),
        })

    tax_lines = []
    if intra_state:
        tax_lines.append((f"CGST @ {format_rate(pricing.cgst.rate)}", format_inr(pricing.cgst.amount)))
        tax_lines.append((f"SGST @ {format_rate(pricing.sgst.rate)}", format_inr(pricing.sgst.amount)))
    else:
        tax_lines.append((f"IGST @ {format_rate(pricing.igst.rate)}", format_inr(pricing.igst.amount)))

    bank = business.bank_details
    receiver = snapshot.receiver

    return {
        "invoice_number": invoice_number,
        "invoice_date": format_date(generated_at),
        "order_number": snapshot.order.order_number,
        "order_date": format_date(snapshot.order.order_date),
        "payment_method": snapshot.order.payment_method or "",
        "payment_status": snapshot.order.payment_status or "",
        "business_name": business.name,
        "business_address": "\n".join(
            part for part in (
                business.address,
                f"{business.city}, {business.state} - {business.pincode}",
                business.country,
            ) if part
        ),
        "business_gstin": business.gstin,
        "business_pan": business.pan,
        "business_state_code": business.state_code or "",
        "business_contact": " | ".join(part for part in (business.phone, business.email, business.website) if part),
        "bank_account_name": bank.account_name,
        "bank_account_number": bank.account_number,
        "bank_ifsc": bank.ifsc,
        "bank_name": f"{bank.bank_name}, {bank.branch}",
        "customer_name": snapshot.customer.name,
        "customer_email": snapshot.customer.email or "",
        "customer_phone": snapshot.customer.phone or "",
        "billing_address": format_address(snapshot.addresses.billing),
        "shipping_address": format_address(snapshot.addresses.shipping),
        "is_different_receiver": snapshot.addresses.is_different_receiver,
        "receiver_name": (receiver.name or "") if receiver else "",
        "receiver_phone": (receiver.phone or "") if receiver else "",
        "items": items,
        "subtotal": format_inr(pricing.subtotal),
        "product_discount": format_inr(pricing.product_discount),
        "coupon_code": snapshot.coupon.code if snapshot.coupon else "",
        "coupon_discount": format_inr(pricing.coupon_discount),
        "shipping_fee": format_inr(pricing.shipping_fee),
        "taxable_amount": format_inr(pricing.taxable_amount),
        "supply_type": "Intra-State" if intra_state else "Inter-State",
        "tax_lines": tax_lines,
        "total_tax": format_inr(pricing.total_tax),
        "rounding_adjustment": format_inr(pricing.rounding_adjustment),
        "final_amount": format_inr(pricing.final_amount),
        "amount_in_words": pricing.amount_in_words,
        "terms": list(business.terms),
    }


# ==================== Renderers ====================

class InvoiceRenderer(Protocol):
    """Turns a template record into document bytes."""

    def render(self, template: Dict[str, Any]) -> bytes:
        ...


class ReportLabInvoiceRenderer:
    """A4 tax invoice PDF using ReportLab platypus."""

    content_type = "application/pdf"

    def __init__(self, primary_color: str = "#1F3A5F"):
        self.primary_color = colors.HexColor(primary_color)
        styles = getSampleStyleSheet()
        self.styles = {
            "title": ParagraphStyle("InvoiceTitle", parent=styles["Title"], fontSize=16, spaceAfter=4),
            "heading": ParagraphStyle("InvoiceHeading", parent=styles["Heading4"], spaceBefore=4, spaceAfter=2),
            "body": ParagraphStyle("InvoiceBody", parent=styles["BodyText"], fontSize=8.5, leading=11),
            "right": ParagraphStyle("InvoiceRight", parent=styles["BodyText"], fontSize=8.5, alignment=TA_RIGHT),
            "small": ParagraphStyle("InvoiceSmall", parent=styles["BodyText"], fontSize=7.5, leading=9),
        }

    @staticmethod
    def _plain(value: Any) -> str:
        # Standard Type 1 fonts have no rupee glyph
        return str(value).replace(CURRENCY_SYMBOL, "Rs. ")

    def _text(self, value: Any) -> str:
        return escape(self._plain(value)).replace("\n", "<br/>")

    def _para(self, value: Any, style: str = "body") -> Paragraph:
        return Paragraph(self._text(value), self.styles[style])

    def _markup(self, markup: str, style: str = "body") -> Paragraph:
        return Paragraph(markup, self.styles[style])

    def _header(self, data: Dict[str, Any]) -> List[Any]:
        seller = [
            self._markup(f"<b>{self._text(data['business_name'])}</b>"),
            self._para(data["business_address"]),
            self._para(f"GSTIN: {data['business_gstin']}    PAN: {data['business_pan']}"),
            self._para(data["business_contact"], "small"),
        ]
        meta = [
            self._para(f"Invoice No: {data['invoice_number']}", "right"),
            self._para(f"Invoice Date: {data['invoice_date']}", "right"),
            self._para(f"Order No: {data['order_number']}", "right"),
            self._para(f"Order Date: {data['order_date']}", "right"),
            self._para(f"Place of Supply: {data['supply_type']}", "right"),
        ]
        table = Table([[seller, meta]], colWidths=[10 * cm, 7 * cm])
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return [Paragraph("TAX INVOICE", self.styles["title"]), table, Spacer(1, 0.3 * cm)]

    def _parties(self, data: Dict[str, Any]) -> List[Any]:
        bill_to = [
            self._markup("<b>Bill To</b>"),
            self._para(data["customer_name"]),
            self._para(data["billing_address"]),
            self._para(" | ".join(v for v in (data["customer_phone"], data["customer_email"]) if v), "small"),
        ]
        ship_to = [self._markup("<b>Ship To</b>")]
        if data["is_different_receiver"]:
            ship_to.append(self._para(
                " | ".join(v for v in (data["receiver_name"], data["receiver_phone"]) if v)
            ))
        else:
            ship_to.append(self._para(data["customer_name"]))
        ship_to.append(self._para(data["shipping_address"]))

        table = Table([[bill_to, ship_to]], colWidths=[8.5 * cm, 8.5 * cm])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
            ("LINEAFTER", (0, 0), (0, 0), 0.5, colors.grey),
        ]))
        return [table, Spacer(1, 0.3 * cm)]

    def _items(self, data: Dict[str, Any]) -> List[Any]:
        rows = [["#", "Item", "HSN", "Qty", "Rate", "Net Rate", "GST", "Tax", "Amount"]]
        for item in data["items"]:
            name = item["product_name"]
            if item["sku"]:
                name = f"{name}\nSKU: {item['sku']}"
            rows.append([
                item["serial"],
                self._para(name),
                item["hsn_code"],
                item["quantity"],
                self._plain(item["unit_price"]),
                self._plain(item["discounted_unit_price"]),
                item["tax_rate"],
                self._plain(item["tax_amount"]),
                self._plain(item["line_total"]),
            ])

        table = Table(
            rows,
            colWidths=[0.7 * cm, 4.8 * cm, 1.5 * cm, 1.3 * cm, 1.9 * cm, 1.9 * cm, 1.1 * cm, 1.8 * cm, 2 * cm],
            repeatRows=1,
        )
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), self.primary_color),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ]))
        return [table, Spacer(1, 0.3 * cm)]

    def _totals(self, data: Dict[str, Any]) -> List[Any]:
        rows = [
            ["Subtotal", data["subtotal"]],
            ["Product Discount", f"-{data['product_discount']}"],
        ]
        coupon_label = f"Coupon ({data['coupon_code']})" if data["coupon_code"] else "Coupon Discount"
        rows.append([coupon_label, f"-{data['coupon_discount']}"])
        rows.append(["Shipping", data["shipping_fee"]])
        rows.append(["Taxable Amount", data["taxable_amount"]])
        rows.extend([label, amount] for label, amount in data["tax_lines"])
        rows.append(["Round Off", data["rounding_adjustment"]])
        rows.append(["Total", data["final_amount"]])

        table = Table(
            [[self._plain(label), self._plain(value)] for label, value in rows],
            colWidths=[4.5 * cm, 3.5 * cm],
            hAlign="RIGHT",
        )
        table.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 8.5),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("LINEABOVE", (0, -1), (-1, -1), 0.75, colors.black),
        ]))
        return [
            table,
            Spacer(1, 0.2 * cm),
            self._markup(f"<b>Amount in words:</b> {self._text(data['amount_in_words'])}"),
            Spacer(1, 0.3 * cm),
        ]

    def _footer(self, data: Dict[str, Any]) -> List[Any]:
        flowables = [
            Paragraph("Bank Details", self.styles["heading"]),
            self._para(
                f"{data['bank_account_name']}\nA/C: {data['bank_account_number']}    "
                f"IFSC: {data['bank_ifsc']}\n{data['bank_name']}",
                "small",
            ),
        ]
        if data["terms"]:
            flowables.append(Paragraph("Terms &amp; Conditions", self.styles["heading"]))
            for index, term in enumerate(data["terms"], start=1):
                flowables.append(self._para(f"{index}. {term}", "small"))
        flowables.append(Spacer(1, 0.4 * cm))
        flowables.append(self._para("This is a computer generated invoice.", "small"))
        return flowables

    def render(self, template: Dict[str, Any]) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=2 * cm,
            rightMargin=2 * cm,
            topMargin=1.5 * cm,
            bottomMargin=1.5 * cm,
            title=f"Invoice {template['invoice_number']}",
            author=template["business_name"],
        )
        story = (
            self._header(template)
            + self._parties(template)
            + self._items(template)
            + self._totals(template)
            + self._footer(template)
        )
        doc.build(story)
        return buffer.getvalue()


# ==================== Gateway ====================

class InvoiceRenderingGateway:
    """Renders persisted invoices through an InvoiceRenderer."""

    def __init__(self, renderer: InvoiceRenderer | None = None):
        self.renderer = renderer or ReportLabInvoiceRenderer()

    async def render(self, invoice: Invoice) -> bytes:
        """
        Render ``invoice`` from its stored snapshot.

        Raises:
            RenderingError: On any renderer failure or empty output (retryable)
        """
        try:
            snapshot = TaxSnapshot.from_storage(invoice.snapshot)
            template = build_template_data(invoice.invoice_number, invoice.generated_at, snapshot)
            content = await asyncio.to_thread(self.renderer.render, template)
        except RenderingError:
            raise
        except Exception as e:
            logger.error(f"Rendering invoice {invoice.invoice_number} failed: {e}")
            raise RenderingError(
                "Invoice document could not be rendered",
                invoice_number=invoice.invoice_number,
            ) from e

        if not content:
            logger.error(f"Renderer returned no content for invoice {invoice.invoice_number}")
            raise RenderingError(
                "Invoice document could not be rendered",
                invoice_number=invoice.invoice_number,
            )
        return content
