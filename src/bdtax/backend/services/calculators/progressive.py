"""Progressive slab-based income tax engine."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .money import normalise_money
from .slabs import SlabTable, TaxSlab, coerce_slabs

DEFAULT_FISCAL_YEAR = "2026-2027"

# Progressive slabs (BDT)
DEFAULT_SLABS: tuple[TaxSlab, ...] = (
    TaxSlab(0, 350_000, 0.0),
    TaxSlab(350_000, 450_000, 0.05),
    TaxSlab(450_000, 750_000, 0.10),
    TaxSlab(750_000, 1_100_000, 0.15),
    TaxSlab(1_100_000, 1_600_000, 0.20),
    TaxSlab(1_600_000, None, 0.25),
)

DEFAULT_SLAB_TABLE = SlabTable(fiscal_year=DEFAULT_FISCAL_YEAR, slabs=DEFAULT_SLABS)


@dataclass(frozen=True)
class TaxBreakdownLine:
    """Portion of the tax attributable to a single slab."""

    lower_bound: float
    upper_bound: float | None
    rate: float
    amount_in_slab: float
    tax_for_slab: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "from": self.lower_bound,
            "to": self.upper_bound,
            "rate": self.rate,
            "amount_in_slab": self.amount_in_slab,
            "tax_for_slab": self.tax_for_slab,
        }


@dataclass(frozen=True)
class TaxResult:
    """Outcome of a single progressive tax calculation."""

    fiscal_year: str
    total_income: float
    total_expense: float
    taxable_income: float
    calculated_tax: float
    breakdown: tuple[TaxBreakdownLine, ...]

    def as_dict(self) -> dict[str, Any]:
        return {
            "fiscal_year": self.fiscal_year,
            "total_income": self.total_income,
            "total_expense": self.total_expense,
            "taxable_income": self.taxable_income,
            "calculated_tax": self.calculated_tax,
            "breakdown": [line.as_dict() for line in self.breakdown],
        }


class ProgressiveTaxEngine:
    """Stateless calculator bound to a default slab table.

    The default table is used whenever a caller does not supply slabs of its
    own; instances hold no mutable state and may be shared across threads.
    """

    def __init__(self, default_table: SlabTable = DEFAULT_SLAB_TABLE) -> None:
        self._default_table = default_table

    @property
    def default_table(self) -> SlabTable:
        return self._default_table

    def resolve_slabs(self, slabs: Iterable[Any] | None) -> tuple[TaxSlab, ...]:
        """Return the caller's slabs when provided, else the default table."""

        rows = list(slabs) if slabs is not None else []
        if not rows:
            return self._default_table.slabs
        return coerce_slabs(rows)

    def calculate(
        self,
        total_income: Any,
        total_expense: Any,
        fiscal_year: str | None = None,
        slabs: Iterable[Any] | None = None,
    ) -> TaxResult:
        income = normalise_money(total_income)
        expense = normalise_money(total_expense)
        taxable_income = normalise_money(income - expense)

        breakdown: list[TaxBreakdownLine] = []
        for slab in self.resolve_slabs(slabs):
            amount_in_slab = max(
                0.0, min(taxable_income, slab.effective_upper) - slab.lower_bound
            )
            line = TaxBreakdownLine(
                lower_bound=slab.lower_bound,
                upper_bound=slab.upper_bound,
                rate=slab.rate,
                amount_in_slab=normalise_money(amount_in_slab),
                tax_for_slab=normalise_money(amount_in_slab * slab.rate),
            )
            # Zero-rate slabs are always reported, even at zero income.
            if line.amount_in_slab > 0 or line.rate == 0:
                breakdown.append(line)

        calculated_tax = normalise_money(sum(line.tax_for_slab for line in breakdown))

        return TaxResult(
            fiscal_year=fiscal_year or self._default_table.fiscal_year,
            total_income=income,
            total_expense=expense,
            taxable_income=taxable_income,
            calculated_tax=calculated_tax,
            breakdown=tuple(breakdown),
        )


_DEFAULT_ENGINE = ProgressiveTaxEngine()


def calculate_tax(
    total_income: Any,
    total_expense: Any,
    fiscal_year: str | None = None,
    slabs: Iterable[Any] | None = None,
) -> TaxResult:
    """Calculate progressive tax using ``slabs`` or the default table."""

    return _DEFAULT_ENGINE.calculate(total_income, total_expense, fiscal_year, slabs)


__all__ = [
    "DEFAULT_FISCAL_YEAR",
    "DEFAULT_SLABS",
    "DEFAULT_SLAB_TABLE",
    "ProgressiveTaxEngine",
    "TaxBreakdownLine",
    "TaxResult",
    "calculate_tax",
]
