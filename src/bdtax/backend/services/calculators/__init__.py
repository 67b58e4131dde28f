"""Domain-specific calculation helpers."""

from .money import (
    finite_or_zero,
    format_percentage,
    normalise_money,
    round_currency,
    round_half_up,
    round_rate,
)
from .progressive import (
    DEFAULT_FISCAL_YEAR,
    DEFAULT_SLAB_TABLE,
    DEFAULT_SLABS,
    ProgressiveTaxEngine,
    TaxBreakdownLine,
    TaxResult,
    calculate_tax,
)
from .slabs import SlabTable, TaxSlab, coerce_slabs, validate_slab_sequence
from .trade import TradeTaxResult, TradeType, calculate_trade_tax

__all__ = [
    "DEFAULT_FISCAL_YEAR",
    "DEFAULT_SLAB_TABLE",
    "DEFAULT_SLABS",
    "ProgressiveTaxEngine",
    "SlabTable",
    "TaxBreakdownLine",
    "TaxResult",
    "TaxSlab",
    "TradeTaxResult",
    "TradeType",
    "calculate_tax",
    "calculate_trade_tax",
    "coerce_slabs",
    "finite_or_zero",
    "format_percentage",
    "normalise_money",
    "round_currency",
    "round_half_up",
    "round_rate",
    "validate_slab_sequence",
]
