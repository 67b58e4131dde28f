"""Import/export duty calculator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .money import finite_or_zero, round_half_up


class TradeType(str, Enum):
    """Direction of a trade transaction; a classification tag only."""

    IMPORT = "import"
    EXPORT = "export"

    @classmethod
    def parse(cls, value: TradeType | str) -> TradeType:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(
                f"Unknown trade type {value!r}; expected 'import' or 'export'"
            ) from exc


@dataclass(frozen=True)
class TradeTaxResult:
    """Combined duty rate (percentage) and the resulting tax."""

    rate: float
    calculated_tax: float

    def as_dict(self) -> dict[str, float]:
        return {"rate": self.rate, "calculated_tax": self.calculated_tax}


def calculate_trade_tax(
    trade_type: TradeType | str,
    amount: Any,
    country_rate: Any,
    category_rate: Any,
) -> TradeTaxResult:
    """Apply ``country_rate + category_rate`` percent to ``amount``.

    Import and export transactions share the same formula. A rate or tax that
    overflows the float range collapses to zero like any other non-finite
    input.
    """

    TradeType.parse(trade_type)

    base = max(0.0, finite_or_zero(amount))
    combined = finite_or_zero(country_rate) + finite_or_zero(category_rate)
    rate = max(0.0, finite_or_zero(combined))
    calculated_tax = round_half_up(finite_or_zero(base * (rate / 100)), 2)
    return TradeTaxResult(rate=rate, calculated_tax=calculated_tax)


__all__ = ["TradeTaxResult", "TradeType", "calculate_trade_tax"]
