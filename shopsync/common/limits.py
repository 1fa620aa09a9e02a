"""Budget and page-size bounds."""

from typing import Any, Tuple


def clamp_int(value: Any, bounds: Tuple[int, int, int]) -> int:
    """
    Coerce value into [low, high].

    Args:
        value: Raw input (int, numeric string, None, ...)
        bounds: (low, high, default); non-numeric values give the default

    Returns:
        Clamped integer
    """
    low, high, default = bounds
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))
