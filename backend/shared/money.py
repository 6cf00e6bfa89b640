"""Integer-cent money helpers.

Amounts are always carried as integer cents. Dollars only appear when parsing
form input and when formatting for display.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS_PER_DOLLAR = 100

_CENT = Decimal("0.01")


def parse_amount_dollars(value: str | None) -> int | None:
    """Parse a dollar amount string into integer cents.

    Returns None for missing, unparsable, non-finite, or non-positive input.
    Fractions of a cent are rounded half-up.
    """
    if value is None:
        return None
    text = value.strip().lstrip("$").replace(",", "")
    if not text:
        return None
    try:
        dollars = Decimal(text)
        if not dollars.is_finite() or dollars <= 0:
            return None
        cents = int(dollars.quantize(_CENT, rounding=ROUND_HALF_UP) * CENTS_PER_DOLLAR)
    except InvalidOperation:
        # Too many digits to represent in cents.
        return None
    if cents <= 0:
        return None
    return cents


def format_amount(cents: int) -> str:
    """Format integer cents for display, e.g. 133700 -> '$1,337.00'."""
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(cents), CENTS_PER_DOLLAR)
    return f"{sign}${dollars:,}.{remainder:02d}"
