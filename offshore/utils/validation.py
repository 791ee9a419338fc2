"""
Money amount parsing
"""
import re
from decimal import Decimal

# Decimal comma is accepted ("100,50")
_AMOUNT_RE = re.compile(r"^-?\d+([.,]\d{1,2})?$")


def parse_non_negative_amount(value) -> Decimal:
    """
    Parse str/int/Decimal into a non-negative Decimal with at most 2 places.

    Raises:
        ValueError: malformed, more than 2 decimal places, or negative
    """
    text = format(value, "f") if isinstance(value, Decimal) else str(value).strip()
    if not _AMOUNT_RE.match(text):
        raise ValueError(f"Invalid amount: {value!r} (at most 2 decimal places)")
    amount = Decimal(text.replace(",", "."))
    if amount < 0:
        raise ValueError("Amount must not be negative")
    return amount


def amount_field(value: str | None) -> str | None:
    """pydantic field validator: normalized amount string, None passes through."""
    if value is None:
        return None
    return str(parse_non_negative_amount(value))
