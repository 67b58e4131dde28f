"""Slab table types plus coercion and validation of caller-supplied rows."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from bdtax.backend.config.schema import InvalidSlabConfigError

# Field aliases accepted for each slab attribute, in lookup order.
_LOWER_KEYS = ("from", "lower_bound", "slab_from", "lower")
_UPPER_KEYS = ("to", "upper_bound", "slab_to", "upper")
_RATE_KEYS = ("rate",)


@dataclass(frozen=True)
class TaxSlab:
    """A contiguous income bracket taxed at ``rate``."""

    lower_bound: float
    upper_bound: float | None
    rate: float

    @property
    def effective_upper(self) -> float:
        return math.inf if self.upper_bound is None else self.upper_bound

    def as_dict(self) -> dict[str, Any]:
        return {"from": self.lower_bound, "to": self.upper_bound, "rate": self.rate}


@dataclass(frozen=True)
class SlabTable:
    """Named slab configuration valid for a single fiscal year."""

    fiscal_year: str
    slabs: tuple[TaxSlab, ...]

    def as_dict(self) -> dict[str, Any]:
        return {
            "fiscal_year": self.fiscal_year,
            "slabs": [slab.as_dict() for slab in self.slabs],
        }


def _lookup(row: Mapping[str, Any], keys: Sequence[str]) -> tuple[bool, Any]:
    for key in keys:
        if key in row:
            return True, row[key]
    return False, None


def _coerce_number(value: Any, *, index: int, field: str) -> float:
    if isinstance(value, bool):
        raise InvalidSlabConfigError(f"Slab {index}: '{field}' must be numeric")
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidSlabConfigError(
            f"Slab {index}: '{field}' must be numeric, got {value!r}"
        ) from exc
    if not math.isfinite(number):
        raise InvalidSlabConfigError(f"Slab {index}: '{field}' must be finite")
    return number


def _coerce_row(row: Any, index: int) -> TaxSlab:
    if isinstance(row, TaxSlab):
        row = row.as_dict()
    if not isinstance(row, Mapping):
        raise InvalidSlabConfigError(f"Slab {index}: expected a mapping, got {type(row).__name__}")

    found, raw_lower = _lookup(row, _LOWER_KEYS)
    if not found:
        raise InvalidSlabConfigError(f"Slab {index}: missing lower bound")
    lower = _coerce_number(raw_lower, index=index, field="from")
    if lower < 0:
        raise InvalidSlabConfigError(f"Slab {index}: 'from' cannot be negative")

    _, raw_upper = _lookup(row, _UPPER_KEYS)
    upper: float | None
    if raw_upper is None or (isinstance(raw_upper, str) and not raw_upper.strip()):
        upper = None
    else:
        upper = _coerce_number(raw_upper, index=index, field="to")
        if upper <= lower:
            raise InvalidSlabConfigError(
                f"Slab {index}: 'to' ({upper:g}) must be greater than 'from' ({lower:g})"
            )

    found, raw_rate = _lookup(row, _RATE_KEYS)
    if not found:
        raise InvalidSlabConfigError(f"Slab {index}: missing rate")
    rate = _coerce_number(raw_rate, index=index, field="rate")
    if rate < 0 or rate > 1:
        raise InvalidSlabConfigError(
            f"Slab {index}: 'rate' must be a fraction between 0 and 1, got {rate:g}"
        )

    return TaxSlab(lower_bound=lower, upper_bound=upper, rate=rate)


def coerce_slabs(rows: Iterable[Any]) -> tuple[TaxSlab, ...]:
    """Convert caller-supplied slab rows into validated :class:`TaxSlab` values.

    Rows may use engine keys (``from``/``to``/``rate``), store keys
    (``lower_bound``/``upper_bound``) or admin-table keys
    (``slab_from``/``slab_to``). Ordering is preserved as given.
    """

    return tuple(_coerce_row(row, index) for index, row in enumerate(rows))


def validate_slab_sequence(slabs: Sequence[TaxSlab]) -> None:
    """Ensure ``slabs`` form an ascending, contiguous table starting at zero."""

    if not slabs:
        raise InvalidSlabConfigError("At least one tax slab must be defined")

    if slabs[0].lower_bound != 0:
        raise InvalidSlabConfigError("The first tax slab must start at zero")

    for index, (current, following) in enumerate(zip(slabs, slabs[1:])):
        if current.upper_bound is None:
            raise InvalidSlabConfigError(
                f"Slab {index}: only the final slab may have an open upper bound"
            )
        if following.lower_bound < current.upper_bound:
            raise InvalidSlabConfigError(
                f"Slabs {index} and {index + 1} overlap or are not ascending"
            )
        if following.lower_bound > current.upper_bound:
            raise InvalidSlabConfigError(
                f"Gap between slab {index} and slab {index + 1}"
            )

    if slabs[-1].upper_bound is not None:
        raise InvalidSlabConfigError("Final tax slab must have an open upper bound")


__all__ = [
    "SlabTable",
    "TaxSlab",
    "coerce_slabs",
    "validate_slab_sequence",
]
