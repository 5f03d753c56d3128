"""Amount in words for Indian invoices (lakh/crore numbering)."""
import logging
from decimal import Decimal, ROUND_HALF_UP

from num2words import num2words


logger = logging.getLogger(__name__)

CURRENCY_SYMBOL = "₹"


def _words(number: int) -> str:
    # num2words gives "one lakh, twenty-three thousand, four hundred and fifty-six"
    raw = num2words(number, lang="en_IN")
    tokens = raw.replace(",", " ").replace("-", " ").split()
    return " ".join(token.title() for token in tokens if token.lower() != "and")


def amount_to_words(amount: Decimal) -> str:
    """
    Convert a rupee amount to its long form.

    Examples:
        1239    -> "One Thousand Two Hundred Thirty Nine Rupees Only"
        1234.50 -> "One Thousand Two Hundred Thirty Four Rupees and Fifty Paise Only"

    Falls back to "₹<amount> Only" if conversion fails; invoice generation
    never aborts because of the words line.
    """
    try:
        value = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if value < 0:
            raise ValueError("negative amount")

        rupees = int(value)
        paise = int((value - rupees) * 100)

        rupee_unit = "Rupee" if rupees == 1 else "Rupees"
        result = f"{_words(rupees)} {rupee_unit}"
        if paise > 0:
            paise_unit = "Paisa" if paise == 1 else "Paise"
            result += f" and {_words(paise)} {paise_unit}"
        return f"{result} Only"
    except Exception as e:
        logger.warning(f"Could not convert amount {amount!r} to words, using numeric form: {e}")
        return f"{CURRENCY_SYMBOL}{amount} Only"
