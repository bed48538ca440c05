"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re

MINOR_UNIT_EXPONENT = 2


def parse_decimal(amount_str: str) -> Decimal:
    """Parse a display amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "₦123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

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

    amount_str = re.sub(r"[$€£¥₦]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount


def to_minor_units(amount: Decimal, exponent: int = MINOR_UNIT_EXPONENT) -> int:
    """Convert a display Decimal into integer minor units."""
    scaled = amount * (Decimal(10) ** exponent)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_amount(amount_str: str, exponent: int = MINOR_UNIT_EXPONENT) -> int:
    """Parse a display amount string straight into minor units.

    Examples:
        >>> parse_amount("1,000.50")
        100050
    """
    return to_minor_units(parse_decimal(amount_str), exponent)


def format_amount(minor: int, currency: str | None = None, exponent: int = MINOR_UNIT_EXPONENT) -> str:
    """Format minor units for display, e.g. ``100050 -> '1,000.50 NGN'``."""
    value = Decimal(minor) / (Decimal(10) ** exponent)
    text = f"{value:,.{exponent}f}"
    return f"{text} {currency}" if currency else text
