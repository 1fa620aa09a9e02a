"""
Price conversion helpers.

Provider prices are decimal strings in major units; the local catalog
stores integer minor units (cents).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .constants import ZERO_DECIMAL_CURRENCIES


def price_to_cents(amount: str | None, currency: str | None = None) -> int | None:
    """
    Convert a provider price string to integer minor units.

    A pure-integer string is used directly only for zero-decimal currencies
    (JPY, KRW, ...), where minor and major units coincide. Everything else is
    parsed as a decimal amount and rounded half-up to the nearest cent.

    Returns:
        Minor units (may be zero or negative), or None if unparseable

    Examples:
        "199.00"         -> 19900
        "12.345"         -> 1235
        "1500" (JPY)     -> 1500
        "", "abc", "NaN" -> None
        "1e30"           -> None
    """
    if amount is None:
        return None
    text = str(amount).strip()
    if not text:
        return None

    if text.lstrip("-").isdigit() and (currency or "").upper() in ZERO_DECIMAL_CURRENCIES:
        return int(text)

    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    try:
        return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except ArithmeticError:
        # Outside the decimal context's precision or exponent range
        return None


def format_cents(cents: int, currency: str | None = None) -> str:
    """Format minor units for reports, e.g. 19900 -> '199.00 USD'."""
    text = f"{cents / 100:.2f}"
    return f"{text} {currency}" if currency else text
