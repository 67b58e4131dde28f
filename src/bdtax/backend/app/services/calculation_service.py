"""Orchestrate request validation, slab resolution, and tax calculations.

The calculation service connects the request models, the translation layer and
the fiscal year configuration to the pure calculators so that routes and the
review workflow share a single ``calculate_income_tax`` / ``calculate_trade_duty``
entry point.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from bdtax.backend.app.localization import Translator, get_translator
from bdtax.backend.app.models import (
    TaxCalculationRequest,
    TaxCalculationResponse,
    TradeCalculationRequest,
    TradeCalculationResponse,
    format_validation_error,
)
from bdtax.backend.config.year_config import (
    load_fiscal_year_configuration,
    load_manifest,
    load_trade_configuration,
    to_slab_table,
)
from bdtax.backend.services.calculators import (
    DEFAULT_SLAB_TABLE,
    SlabTable,
    TaxBreakdownLine,
    TaxResult,
    calculate_tax,
    calculate_trade_tax,
    coerce_slabs,
    finite_or_zero,
    format_percentage,
    round_currency,
    round_rate,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_USD_BDT_RATE = 120.0


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("BDTAX_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


@dataclass(frozen=True)
class ResolvedSlabs:
    """Slab table chosen for a calculation and where it came from."""

    table: SlabTable
    source: str
    currency: str = "BDT"


def resolve_slab_table(
    fiscal_year: str | None, slabs: list[Mapping[str, Any]] | None = None
) -> ResolvedSlabs:
    """Pick the slabs for a calculation.

    Explicit slabs win, then the configured table for ``fiscal_year`` (or the
    manifest default), then the built-in table.
    """

    manifest = load_manifest()
    label = fiscal_year or manifest.resolved_default

    if slabs:
        table = SlabTable(
            fiscal_year=label or DEFAULT_SLAB_TABLE.fiscal_year,
            slabs=coerce_slabs(slabs),
        )
        return ResolvedSlabs(table=table, source="request")

    if label is not None:
        try:
            configuration = load_fiscal_year_configuration(label)
        except FileNotFoundError:
            _LOGGER.warning(
                "No slab configuration for fiscal year %s; using built-in table", label
            )
        else:
            return ResolvedSlabs(
                table=to_slab_table(configuration),
                source="configuration",
                currency=configuration.currency,
            )

    table = SlabTable(
        fiscal_year=label or DEFAULT_SLAB_TABLE.fiscal_year,
        slabs=DEFAULT_SLAB_TABLE.slabs,
    )
    return ResolvedSlabs(table=table, source="default")


def _format_amount(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def breakdown_label(line: TaxBreakdownLine, translator: Translator) -> str:
    """Return a human label such as ``First 350,000`` or ``Next 100,000``."""

    if line.upper_bound is None:
        return translator("breakdown.remaining", lower=_format_amount(line.lower_bound))
    if line.lower_bound == 0:
        return translator("breakdown.first_slab", upper=_format_amount(line.upper_bound))
    width = line.upper_bound - line.lower_bound
    return translator("breakdown.next_slab", width=_format_amount(width))


def validate_payload(model: type, payload: Any, subject: str) -> Any:
    """Validate ``payload`` against ``model``, raising ``ValueError`` on failure."""

    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Payload must be a mapping")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc, subject=subject)) from exc


def run_income_tax(
    total_income: Any,
    total_expense: Any,
    fiscal_year: str | None = None,
    slabs: list[Mapping[str, Any]] | None = None,
) -> tuple[TaxResult, ResolvedSlabs]:
    """Resolve slabs for ``fiscal_year`` and run the progressive engine."""

    resolved = resolve_slab_table(fiscal_year, slabs)
    _LOGGER.debug(
        "Calculating tax for fiscal year %s using %s slabs",
        resolved.table.fiscal_year,
        resolved.source,
    )
    result = calculate_tax(
        total_income,
        total_expense,
        fiscal_year=resolved.table.fiscal_year,
        slabs=resolved.table.slabs,
    )
    return result, resolved


def build_tax_response(
    result: TaxResult,
    resolved: ResolvedSlabs,
    translator: Translator,
    profiling: dict[str, float] | None = None,
) -> dict[str, Any]:
    """Assemble the localised response payload for a tax result."""

    effective_rate = (
        result.calculated_tax / result.total_income if result.total_income > 0 else 0.0
    )

    summary = {
        "total_income": result.total_income,
        "total_expense": result.total_expense,
        "taxable_income": result.taxable_income,
        "calculated_tax": result.calculated_tax,
        "effective_tax_rate": round_rate(effective_rate),
        "labels": {
            "total_income": translator("summary.total_income"),
            "total_expense": translator("summary.total_expense"),
            "taxable_income": translator("summary.taxable_income"),
            "calculated_tax": translator("summary.calculated_tax"),
            "effective_tax_rate": translator("summary.effective_tax_rate"),
        },
    }

    breakdown = [
        {
            "label": breakdown_label(line, translator),
            "rate_label": format_percentage(line.rate),
            **line.as_dict(),
        }
        for line in result.breakdown
    ]

    meta: dict[str, Any] = {
        "fiscal_year": result.fiscal_year,
        "locale": translator.locale,
        "currency": resolved.currency,
        "slab_source": resolved.source,
    }
    if profiling is not None:
        meta["profiling"] = profiling

    response_model = TaxCalculationResponse.model_validate(
        {
            "result": result.as_dict(),
            "summary": summary,
            "breakdown": breakdown,
            "meta": meta,
        }
    )
    response = response_model.model_dump(mode="json", by_alias=True)
    if response["meta"].get("profiling") is None:
        response["meta"].pop("profiling", None)
    return response


def calculate_income_tax(
    payload: Mapping[str, Any] | TaxCalculationRequest,
) -> dict[str, Any]:
    """Compute the progressive income tax for the provided payload."""

    request_model: TaxCalculationRequest = validate_payload(
        TaxCalculationRequest, payload, "calculation"
    )

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    with _profile_section("calculate", timings):
        result, resolved = run_income_tax(
            request_model.total_income,
            request_model.total_expense,
            request_model.fiscal_year,
            request_model.slabs,
        )

    translator = get_translator(request_model.locale)

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_income_tax timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return build_tax_response(result, resolved, translator, timings)


def _resolve_country_rate(request: TradeCalculationRequest) -> float:
    if request.country_rate is not None:
        return request.country_rate
    if request.country_code is None:
        return 0.0
    try:
        country = load_trade_configuration().get_country(request.country_code)
    except KeyError as exc:
        raise ValueError(f"Unknown country code '{request.country_code}'") from exc
    return country.rate_for(request.type.value)


def _resolve_category_rate(request: TradeCalculationRequest) -> float:
    if request.category_rate is not None:
        return request.category_rate
    if request.category_id is None:
        return 0.0
    try:
        category = load_trade_configuration().get_category(request.category_id)
    except KeyError as exc:
        raise ValueError(f"Unknown product category '{request.category_id}'") from exc
    return category.base_rate


def trade_party_names(
    country_code: str | None, category_id: str | None
) -> tuple[str, str]:
    """Return display names for a trade's country and product category.

    Unknown or missing identifiers fall back to the identifier itself (or an
    empty string) so explicit-rate calculations can still be stored.
    """

    configuration = load_trade_configuration()
    countries = {country.code: country.name for country in configuration.countries}
    categories = {category.id: category.name for category in configuration.categories}

    country = countries.get((country_code or "").upper(), country_code or "")
    category = categories.get(category_id or "", category_id or "")
    return country, category


def usd_bdt_rate() -> float:
    """Return the configured USD to BDT exchange rate."""

    rate = load_trade_configuration().exchange_rates.get("USD_BDT")
    return float(rate) if rate else DEFAULT_USD_BDT_RATE


def calculate_trade_duty(
    payload: Mapping[str, Any] | TradeCalculationRequest,
) -> dict[str, Any]:
    """Compute import/export duty for the provided payload."""

    request_model: TradeCalculationRequest = validate_payload(
        TradeCalculationRequest, payload, "trade"
    )

    input_amount = max(0.0, finite_or_zero(request_model.amount))
    exchange_rate: float | None = None
    amount = input_amount
    if request_model.currency == "USD":
        exchange_rate = usd_bdt_rate()
        amount = input_amount * exchange_rate

    country_rate = _resolve_country_rate(request_model)
    category_rate = _resolve_category_rate(request_model)

    result = calculate_trade_tax(request_model.type, amount, country_rate, category_rate)
    translator = get_translator(request_model.locale)

    _LOGGER.debug(
        "Trade duty %s: amount=%s rate=%s%%", request_model.type.value, amount, result.rate
    )

    response_model = TradeCalculationResponse.model_validate(
        {
            "result": result.as_dict(),
            "input": {
                "type": request_model.type.value,
                "amount": round_currency(amount),
                "input_amount": input_amount,
                "input_currency": request_model.currency,
                "usd_bdt_rate": exchange_rate,
                "country_rate": country_rate,
                "category_rate": category_rate,
                "country_code": request_model.country_code,
                "category_id": request_model.category_id,
                "product_name": request_model.product_name,
            },
            "meta": {
                "locale": translator.locale,
                "type_label": translator(f"trade.type.{request_model.type.value}"),
                "labels": {
                    "rate": translator("trade.rate"),
                    "calculated_tax": translator("trade.calculated_tax"),
                },
            },
        }
    )
    return response_model.model_dump(mode="json")


__all__ = [
    "DEFAULT_USD_BDT_RATE",
    "ResolvedSlabs",
    "breakdown_label",
    "build_tax_response",
    "calculate_income_tax",
    "calculate_trade_duty",
    "resolve_slab_table",
    "run_income_tax",
    "trade_party_names",
    "usd_bdt_rate",
    "validate_payload",
]
