"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re
from typing import Any


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "1500"
    - "-250.75"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)
    - "Rs 1,200" or "$1,200" (currency marker is dropped)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"^(rs\.?|pkr|usd|aed)\s*", "", amount_str, flags=re.IGNORECASE)
    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored number (int, float, numeric string or None) to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. None and blank strings are zero.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        if not value.strip():
            return Decimal("0")
        return parse_amount(value)
    raise ValueError(f"Not an amount: {value!r}")
