from __future__ import annotations

import math
from fractions import Fraction
from typing import Any


MIN_MULTIPLIER = 0.5
MULTIPLIER_STEP = 0.5


def _round_half_up(value: Fraction, places: int) -> str:
    """Round ``value`` half away from zero to ``places`` decimals."""

    scale = 10 ** places
    scaled = math.floor(abs(value) * scale + Fraction(1, 2))
    sign = "-" if value < 0 and scaled else ""
    whole, fraction = divmod(scaled, scale)
    if not places:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction:0{places}d}"


def scale_servings(base: int, multiplier: float) -> int:
    """Servings for ``multiplier``, rounded half up to a whole serving."""

    return math.floor(Fraction(base) * Fraction(multiplier) + Fraction(1, 2))


def scale_quantity(amount: Any, multiplier: float) -> str:
    """Format ``amount * multiplier`` for display.

    Whole units when scaling up or keeping the recipe as is, one decimal
    place when scaling down. Amounts that are not finite numbers are shown
    as stored.

    >>> scale_quantity(2, 0.5)
    '1.0'
    >>> scale_quantity(2, 2)
    '4'
    """

    try:
        exact = Fraction(amount) * Fraction(multiplier)
    except (TypeError, ValueError, OverflowError):
        return str(amount)
    return _round_half_up(exact, 1 if multiplier < 1 else 0)


def adjust_multiplier(current: float, delta: float) -> float:
    """Step the multiplier, never below ``MIN_MULTIPLIER``.

    A step that would leave the multiplier non-finite is ignored.
    """

    candidate = current + delta
    if not math.isfinite(candidate):
        return current
    return max(MIN_MULTIPLIER, candidate)


__all__ = [
    "MIN_MULTIPLIER",
    "MULTIPLIER_STEP",
    "adjust_multiplier",
    "scale_quantity",
    "scale_servings",
]
