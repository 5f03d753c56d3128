"""
GST computation for tax invoices (pure functions, no I/O, no formatting).

ROUNDING POLICY:
    Whole-rupee rounding is ROUND_HALF_UP everywhere.
    • Line tax is rounded per line, independently. The sum of line taxes can
      differ by a rupee or two from tax computed on the aggregate; that is
      intentional so every printed line adds up.
    • Intra-state split: CGST = round_half_up(total_tax / 2),
      SGST = total_tax - CGST. An odd rupee always lands on CGST, so
      CGST + SGST == total_tax exactly.

SUPPLY TYPE:
    Seller's registered state == place of supply (shipping destination)
        → INTRA_STATE: CGST + SGST, each at half the nominal rate
    otherwise
        → INTER_STATE: IGST at the full nominal rate
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, List, Optional, Sequence


ZERO = Decimal("0")
RUPEE = Decimal("1")
PAISA = Decimal("0.01")
HUNDRED = Decimal("100")


# GST State Code mapping
GST_STATE_CODES = {
    "01": "Jammu & Kashmir", "02": "Himachal Pradesh", "03": "Punjab",
    "04": "Chandigarh", "05": "Uttarakhand", "06": "Haryana",
    "07": "Delhi", "08": "Rajasthan", "09": "Uttar Pradesh",
    "10": "Bihar", "11": "Sikkim", "12": "Arunachal Pradesh",
    "13": "Nagaland", "14": "Manipur", "15": "Mizoram",
    "16": "Tripura", "17": "Meghalaya", "18": "Assam",
    "19": "West Bengal", "20": "Jharkhand", "21": "Odisha",
    "22": "Chhattisgarh", "23": "Madhya Pradesh", "24": "Gujarat",
    "26": "Dadra & Nagar Haveli and Daman & Diu", "27": "Maharashtra",
    "29": "Karnataka", "30": "Goa",
    "31": "Lakshadweep", "32": "Kerala", "33": "Tamil Nadu",
    "34": "Puducherry", "35": "Andaman & Nicobar Islands",
    "36": "Telangana", "37": "Andhra Pradesh",
    "38": "Ladakh", "97": "Other Territory"
}

# Common spellings that differ from the official names above
STATE_ALIASES = {
    "JAMMU AND KASHMIR": "01",
    "NEW DELHI": "07",
    "NCT OF DELHI": "07",
    "ORISSA": "21",
    "PONDICHERRY": "34",
    "ANDAMAN AND NICOBAR ISLANDS": "35",
    "DAMAN AND DIU": "26",
    "DADRA AND NAGAR HAVELI": "26",
}

# Reverse mapping: State name to code
STATE_TO_CODE = {v.upper(): k for k, v in GST_STATE_CODES.items()}
STATE_TO_CODE.update(STATE_ALIASES)


class SupplyType(str, Enum):
    INTRA_STATE = "INTRA_STATE"
    INTER_STATE = "INTER_STATE"


def round_rupee(amount: Decimal) -> Decimal:
    """Round to the nearest whole rupee, halves away from zero."""
    return Decimal(amount).quantize(RUPEE, rounding=ROUND_HALF_UP)


def round_paise(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(PAISA, rounding=ROUND_HALF_UP)


def state_code_for(state: Optional[str]) -> Optional[str]:
    """
    Resolve a state name or two-digit GST code to the GST state code.

    Returns None when the state cannot be resolved.
    """
    if not state:
        return None

    value = " ".join(state.strip().upper().split())
    if value.isdigit():
        code = value.zfill(2)
        return code if code in GST_STATE_CODES else None

    return STATE_TO_CODE.get(value)


def state_code_from_gstin(gstin: Optional[str]) -> Optional[str]:
    """The first two characters of a GSTIN are the registering state's code."""
    if gstin and len(gstin) >= 2 and gstin[:2].isdigit() and gstin[:2] in GST_STATE_CODES:
        return gstin[:2]
    return None


def _normalise_state(state: Optional[str]) -> str:
    return " ".join((state or "").strip().upper().split())


def determine_supply_type(
    seller_state: Optional[str],
    destination_state: Optional[str],
    seller_state_name: Optional[str] = None,
) -> SupplyType:
    """
    Compare the seller's registered state with the place of supply.

    ``seller_state`` and ``destination_state`` may be state names or GST
    state codes. When either side cannot be resolved to a code, the
    destination is compared by name against ``seller_state`` and
    ``seller_state_name``. A destination that neither resolves nor matches
    by name is inter-state.
    """
    seller_code = state_code_for(seller_state) or state_code_for(seller_state_name)
    destination_code = state_code_for(destination_state)

    if seller_code and destination_code:
        return SupplyType.INTRA_STATE if seller_code == destination_code else SupplyType.INTER_STATE

    destination = _normalise_state(destination_state)
    seller_names = {_normalise_state(s) for s in (seller_state, seller_state_name)}
    same_state = bool(destination) and destination in seller_names
    return SupplyType.INTRA_STATE if same_state else SupplyType.INTER_STATE


@dataclass(frozen=True)
class LineInput:
    quantity: int
    price: Decimal
    discounted_price: Optional[Decimal] = None
    gst_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class LineTax:
    quantity: int
    unit_price: Decimal
    discounted_unit_price: Decimal
    tax_rate: Decimal
    line_total: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class TaxSplit:
    cgst_rate: Decimal
    cgst_amount: Decimal
    sgst_rate: Decimal
    sgst_amount: Decimal
    igst_rate: Decimal
    igst_amount: Decimal


@dataclass(frozen=True)
class PricingResult:
    lines: List[LineTax]
    subtotal: Decimal
    product_discount: Decimal
    coupon_discount: Decimal
    shipping_fee: Decimal
    taxable_amount: Decimal
    total_tax: Decimal
    nominal_rate: Decimal
    supply_type: SupplyType
    split: TaxSplit
    grand_total: Decimal
    rounding_adjustment: Decimal
    final_amount: Decimal


def compute_line_tax(line: LineInput, default_rate: Decimal) -> LineTax:
    """Tax for one order line, rounded to whole rupees on its own."""
    unit_price = line.discounted_price if line.discounted_price is not None else line.price
    tax_rate = Decimal(line.gst_rate) if line.gst_rate is not None else Decimal(default_rate)
    line_total = unit_price * line.quantity
    tax_amount = round_rupee(line_total * tax_rate / HUNDRED)

    return LineTax(
        quantity=line.quantity,
        unit_price=line.price,
        discounted_unit_price=unit_price,
        tax_rate=tax_rate,
        line_total=line_total,
        tax_amount=tax_amount,
    )


def nominal_rate_for(lines: Sequence[LineTax], default_rate: Decimal) -> Decimal:
    """
    Rate the CGST/SGST/IGST split is expressed against.

    The shared rate when every line carries the same rate, the effective
    rate (total tax / total line value) for mixed rates, and the default rate
    for an order without lines.
    """
    if not lines:
        return Decimal(default_rate)

    rates = {line.tax_rate for line in lines}
    if len(rates) == 1:
        return rates.pop()

    base = sum((line.line_total for line in lines), ZERO)
    if base == ZERO:
        return Decimal(default_rate)
    total_tax = sum((line.tax_amount for line in lines), ZERO)
    return round_paise(total_tax * HUNDRED / base)


def split_tax(total_tax: Decimal, nominal_rate: Decimal, supply_type: SupplyType) -> TaxSplit:
    """Split the total tax into CGST/SGST (intra-state) or IGST (inter-state)."""
    if supply_type == SupplyType.INTRA_STATE:
        half_rate = nominal_rate / 2
        cgst_amount = round_rupee(total_tax / 2)
        sgst_amount = total_tax - cgst_amount
        return TaxSplit(
            cgst_rate=half_rate,
            cgst_amount=cgst_amount,
            sgst_rate=half_rate,
            sgst_amount=sgst_amount,
            igst_rate=ZERO,
            igst_amount=ZERO,
        )

    return TaxSplit(
        cgst_rate=ZERO,
        cgst_amount=ZERO,
        sgst_rate=ZERO,
        sgst_amount=ZERO,
        igst_rate=nominal_rate,
        igst_amount=total_tax,
    )


def compute_pricing(
    lines: Iterable[LineInput],
    subtotal: Decimal,
    product_discount: Decimal,
    coupon_discount: Decimal,
    shipping_fee: Decimal,
    default_rate: Decimal,
    supply_type: SupplyType,
) -> PricingResult:
    """
    Full invoice pricing.

        taxable_amount = subtotal - product_discount - coupon_discount + shipping_fee
        total_tax      = Σ per-line tax
        grand_total    = taxable_amount + total_tax
        final_amount   = round_rupee(grand_total)
        rounding_adj   = final_amount - grand_total
    """
    line_taxes = [compute_line_tax(line, default_rate) for line in lines]

    subtotal = Decimal(subtotal)
    product_discount = Decimal(product_discount)
    coupon_discount = Decimal(coupon_discount)
    shipping_fee = Decimal(shipping_fee)

    taxable_amount = subtotal - product_discount - coupon_discount + shipping_fee
    total_tax = sum((line.tax_amount for line in line_taxes), ZERO)
    nominal_rate = nominal_rate_for(line_taxes, default_rate)
    split = split_tax(total_tax, nominal_rate, supply_type)

    grand_total = taxable_amount + total_tax
    final_amount = round_rupee(grand_total)
    rounding_adjustment = final_amount - grand_total

    return PricingResult(
        lines=line_taxes,
        subtotal=subtotal,
        product_discount=product_discount,
        coupon_discount=coupon_discount,
        shipping_fee=shipping_fee,
        taxable_amount=taxable_amount,
        total_tax=total_tax,
        nominal_rate=nominal_rate,
        supply_type=supply_type,
        split=split,
        grand_total=grand_total,
        rounding_adjustment=rounding_adjustment,
        final_amount=final_amount,
    )
