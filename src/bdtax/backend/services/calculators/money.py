"""Money and rate helpers shared by the calculator modules."""

from __future__ import annotations

import math
from typing import Any


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def round_half_up(value: float, digits: int = 2) -> float:
    """Round ``value`` half-up (towards positive infinity on ties).

    Values too large to scale carry no fractional cents and come back as is.
    """

    factor = 10**digits
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def normalise_money(value: Any) -> float:
    """Return ``value`` as a non-negative amount rounded to cents.

    Non-finite or non-numeric input collapses to ``0.0``; negative amounts are
    clamped to zero. The helper never raises.
    """

    number = _to_float(value)
    if not math.isfinite(number):
        return 0.0
    return max(0.0, round_half_up(number, 2))


def finite_or_zero(value: Any) -> float:
    """Return ``value`` as a float, or ``0.0`` when it is not finite."""

    number = _to_float(value)
    return number if math.isfinite(number) else 0.0


def round_currency(value: float) -> float:
    """Round monetary amounts to two decimals."""

    return round(value, 2)


def round_rate(value: float) -> float:
    """Round rate values to four decimals."""

    return round(value, 4)


def format_percentage(value: float) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = round(value * 100, 6)
    if float(int(percentage)) == percentage:
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


__all__ = [
    "finite_or_zero",
    "format_percentage",
    "normalise_money",
    "round_currency",
    "round_half_up",
    "round_rate",
]
