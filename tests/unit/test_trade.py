"""Tests for the import/export duty calculator."""

from __future__ import annotations

import math
import sys

import pytest

from bdtax.backend.services.calculators import TradeType, calculate_trade_tax


def test_import_duty_combines_country_and_category_rates() -> None:
    result = calculate_trade_tax("import", 1000, 5, 2.5)

    assert result.rate == 7.5
    assert result.calculated_tax == 75.0


def test_negative_amount_clamps_to_zero() -> None:
    result = calculate_trade_tax(TradeType.EXPORT, -50, 10, 10)

    assert result.rate == 20
    assert result.calculated_tax == 0


def test_import_and_export_share_the_formula() -> None:
    imported = calculate_trade_tax("import", 12_345.67, 3, 4)
    exported = calculate_trade_tax("export", 12_345.67, 3, 4)

    assert imported == exported


@pytest.mark.parametrize(
    ("amount", "country_rate", "category_rate", "expected_rate", "expected_tax"),
    [
        (math.nan, 5, 5, 10, 0),
        (1000, math.inf, 5, 5, 50),
        (1000, -20, 5, 0, 0),
        ("1000", "2", None, 2, 20),
    ],
)
def test_non_finite_and_negative_inputs_are_sanitised(
    amount: object,
    country_rate: object,
    category_rate: object,
    expected_rate: float,
    expected_tax: float,
) -> None:
    result = calculate_trade_tax("import", amount, country_rate, category_rate)

    assert result.rate == expected_rate
    assert result.calculated_tax == expected_tax


def test_tax_is_rounded_to_cents() -> None:
    assert calculate_trade_tax("import", 333.33, 3, 0).calculated_tax == 10.0


@pytest.mark.parametrize("value", [" Import ", "EXPORT", TradeType.IMPORT])
def test_trade_type_parse_is_case_insensitive(value: object) -> None:
    assert TradeType.parse(value) in (TradeType.IMPORT, TradeType.EXPORT)


def test_unknown_trade_type_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown trade type"):
        calculate_trade_tax("transit", 100, 1, 1)


def test_huge_amounts_do_not_overflow() -> None:
    result = calculate_trade_tax("import", 1e306, 100, 100)

    assert result.rate == 200
    assert result.calculated_tax == pytest.approx(2e306)


def test_overflowing_rate_or_tax_collapses_to_zero() -> None:
    overflowing_rate = calculate_trade_tax("export", 1000, 1e308, 1e308)
    assert overflowing_rate.rate == 0
    assert overflowing_rate.calculated_tax == 0

    overflowing_tax = calculate_trade_tax("import", sys.float_info.max, 500, 0)
    assert overflowing_tax.rate == 500
    assert overflowing_tax.calculated_tax == 0
