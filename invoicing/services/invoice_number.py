"""
Invoice number codec.

FORMAT:
    INV_<R4>_<S4>      e.g. INV_K7Q2_0043

    R4 - four characters drawn uniformly from [A-Z0-9]. Cosmetic only:
         uniqueness comes from the monotonic per-year sequence, so an
         occasional repeat of R4 is harmless.
    S4 - the sequence, zero-padded to at least four digits. Sequences past
         9999 simply produce more digits.

The year is not encoded in the number; it scopes the sequence only.
"""
import re
import random
import secrets
import string
from dataclasses import dataclass
from typing import Optional

from invoicing.core.exceptions import MalformedInvoiceNumber


RANDOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
RANDOM_CODE_LENGTH = 4
SEQUENCE_MIN_DIGITS = 4
DEFAULT_PREFIX = "INV"


@dataclass(frozen=True)
class ParsedInvoiceNumber:
    prefix: str
    random_code: str
    sequence: int
    full: str


class InvoiceNumberCodec:
    """Formats, parses and validates invoice numbers."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, rng: Optional[random.Random] = None):
        self.prefix = prefix
        self._rng = rng or secrets.SystemRandom()
        self._pattern = re.compile(
            rf"{re.escape(prefix)}_([A-Z0-9]{{{RANDOM_CODE_LENGTH}}})_([0-9]{{{SEQUENCE_MIN_DIGITS},}})"
        )

    def random_code(self) -> str:
        return "".join(self._rng.choice(RANDOM_CODE_ALPHABET) for _ in range(RANDOM_CODE_LENGTH))

    def format(self, year: int, sequence: int, random_code: Optional[str] = None) -> str:
        """
        Build the invoice number for a year-scoped sequence.

        Args:
            year: Year the sequence was issued for
            sequence: Sequence issued by the allocator (>= 0)
            random_code: Optional fixed code, otherwise drawn at random

        Raises:
            ValueError: If sequence is negative or random_code is invalid
        """
        if sequence < 0:
            raise ValueError(f"Sequence must be >= 0, got {sequence} (year {year})")

        code = random_code if random_code is not None else self.random_code()
        if len(code) != RANDOM_CODE_LENGTH or any(c not in RANDOM_CODE_ALPHABET for c in code):
            raise ValueError(f"Random code must be {RANDOM_CODE_LENGTH} characters from [A-Z0-9]")

        return f"{self.prefix}_{code}_{str(sequence).zfill(SEQUENCE_MIN_DIGITS)}"

    def parse(self, invoice_number: str) -> ParsedInvoiceNumber:
        """
        Split an invoice number into its components.

        Raises:
            MalformedInvoiceNumber: If the string does not match the grammar
        """
        if not isinstance(invoice_number, str):
            raise MalformedInvoiceNumber(str(invoice_number))

        match = self._pattern.fullmatch(invoice_number)
        if not match:
            raise MalformedInvoiceNumber(invoice_number)

        return ParsedInvoiceNumber(
            prefix=self.prefix,
            random_code=match.group(1),
            sequence=int(match.group(2)),
            full=invoice_number,
        )

    def validate(self, invoice_number: str) -> bool:
        try:
            self.parse(invoice_number)
        except MalformedInvoiceNumber:
            return False
        return True
