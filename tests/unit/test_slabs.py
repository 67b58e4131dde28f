"""Tests for slab coercion and table validation."""

from __future__ import annotations

import pytest

from bdtax.backend.config.schema import ConfigurationError, InvalidSlabConfigError
from bdtax.backend.services.calculators import (
    DEFAULT_SLABS,
    TaxSlab,
    coerce_slabs,
    validate_slab_sequence,
)


def test_coerce_slabs_accepts_alternate_key_names() -> None:
    slabs = coerce_slabs(
        [
            {"slab_from": "0", "slab_to": "350000", "rate": "0"},
            {"lower": 350_000, "upper": "", "rate": 0.05},
        ]
    )

    assert slabs == (
        TaxSlab(0, 350_000, 0.0),
        TaxSlab(350_000, None, 0.05),
    )


def test_coerce_slabs_passes_through_tax_slabs() -> None:
    assert coerce_slabs(DEFAULT_SLABS) == DEFAULT_SLABS


@pytest.mark.parametrize(
    ("row", "message"),
    [
        ({"to": 10, "rate": 0.1}, "missing lower bound"),
        ({"from": 0, "to": 10}, "missing rate"),
        ({"from": "abc", "rate": 0.1}, "must be numeric"),
        ({"from": float("nan"), "rate": 0.1}, "must be finite"),
        ({"from": -1, "rate": 0.1}, "cannot be negative"),
        ({"from": 10, "to": 10, "rate": 0.1}, "must be greater than"),
        ({"from": 0, "to": 10, "rate": 1.5}, "between 0 and 1"),
        ({"from": 0, "to": 10, "rate": True}, "must be numeric"),
        ("0-10", "expected a mapping"),
    ],
)
def test_coerce_slabs_rejects_malformed_rows(row: object, message: str) -> None:
    with pytest.raises(InvalidSlabConfigError, match=message):
        coerce_slabs([row])


def test_invalid_slab_error_is_a_value_error() -> None:
    assert issubclass(InvalidSlabConfigError, ConfigurationError)
    assert issubclass(InvalidSlabConfigError, ValueError)


def test_validate_slab_sequence_accepts_default_table() -> None:
    validate_slab_sequence(DEFAULT_SLABS)


@pytest.mark.parametrize(
    ("slabs", "message"),
    [
        ((), "At least one"),
        ((TaxSlab(100, None, 0.1),), "start at zero"),
        ((TaxSlab(0, None, 0.0), TaxSlab(10, None, 0.1)), "only the final slab"),
        ((TaxSlab(0, 100, 0.0), TaxSlab(50, None, 0.1)), "overlap"),
        ((TaxSlab(0, 100, 0.0), TaxSlab(150, None, 0.1)), "Gap"),
        ((TaxSlab(0, 100, 0.0), TaxSlab(100, 200, 0.1)), "open upper bound"),
    ],
)
def test_validate_slab_sequence_rejects_broken_tables(
    slabs: tuple[TaxSlab, ...], message: str
) -> None:
    with pytest.raises(InvalidSlabConfigError, match=message):
        validate_slab_sequence(slabs)


def test_effective_upper_is_infinite_for_open_slab() -> None:
    assert TaxSlab(0, None, 0.1).effective_upper == float("inf")
    assert TaxSlab(0, 10, 0.1).effective_upper == 10
