"""Utilities for validating fiscal year and trade configuration data."""

from __future__ import annotations

import argparse
from collections import Counter
from typing import Mapping, Sequence

from .schema import (
    ConfigurationError,
    CountryRate,
    FiscalYearConfiguration,
    ProductCategoryRate,
    SlabConfig,
    TradeConfiguration,
)
from .year_config import (
    available_fiscal_years,
    load_fiscal_year_configuration,
    load_trade_configuration,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_slabs(scope: str, slabs: Sequence[SlabConfig]) -> list[str]:
    errors: list[str] = []

    if not slabs:
        errors.append(_format_scope(scope, "no slabs defined"))
        return errors

    if slabs[0].lower_bound != 0:
        errors.append(_format_scope(scope, "first slab must start at zero"))

    for index, slab in enumerate(slabs):
        if slab.rate < 0 or slab.rate > 1:
            errors.append(
                _format_scope(
                    f"{scope}[{index}]",
                    f"rate {slab.rate} must be between 0 and 1",
                )
            )
        if slab.upper_bound is not None and slab.upper_bound <= slab.lower_bound:
            errors.append(
                _format_scope(
                    f"{scope}[{index}]",
                    "upper bound must exceed the lower bound",
                )
            )

    for index, (current, following) in enumerate(zip(slabs, slabs[1:])):
        if current.upper_bound is None:
            errors.append(
                _format_scope(
                    f"{scope}[{index}]",
                    "only the final slab may have an open upper bound",
                )
            )
            continue
        if following.lower_bound != current.upper_bound:
            errors.append(
                _format_scope(
                    f"{scope}[{index + 1}]",
                    (
                        f"lower bound {following.lower_bound:g} does not continue "
                        f"from the previous upper bound {current.upper_bound:g}"
                    ),
                )
            )

    if slabs[-1].upper_bound is not None:
        errors.append(_format_scope(scope, "final slab must have an open upper bound"))

    rates = [slab.rate for slab in slabs]
    if rates != sorted(rates):
        errors.append(_format_scope(scope, "slab rates should not decrease"))

    return errors


def _validate_countries(countries: Sequence[CountryRate]) -> list[str]:
    errors: list[str] = []
    duplicates = [
        code for code, count in Counter(country.code for country in countries).items() if count > 1
    ]
    if duplicates:
        errors.append(
            _format_scope(
                "trade.countries",
                f"duplicate country codes detected: {sorted(duplicates)}",
            )
        )

    for country in countries:
        for label, value in {
            "import": country.import_rate,
            "export": country.export_rate,
        }.items():
            if value < 0 or value > 100:
                errors.append(
                    _format_scope(
                        f"trade.countries.{country.code}",
                        f"{label} rate {value} must be between 0 and 100",
                    )
                )
    return errors


def _validate_categories(categories: Sequence[ProductCategoryRate]) -> list[str]:
    errors: list[str] = []
    seen_ids: set[str] = set()
    for category in categories:
        if category.id in seen_ids:
            errors.append(
                _format_scope(
                    "trade.categories",
                    f"duplicate category identifier '{category.id}' detected",
                )
            )
        else:
            seen_ids.add(category.id)

        if category.base_rate < 0 or category.base_rate > 100:
            errors.append(
                _format_scope(
                    f"trade.categories.{category.id}",
                    f"base rate {category.base_rate} must be between 0 and 100",
                )
            )
    return errors


def _validate_exchange_rates(rates: Mapping[str, float]) -> list[str]:
    errors: list[str] = []
    if "USD_BDT" not in rates:
        errors.append(_format_scope("trade.exchange_rates", "USD_BDT rate is missing"))
    for code, rate in rates.items():
        if rate <= 0:
            errors.append(
                _format_scope("trade.exchange_rates", f"rate for '{code}' must be positive")
            )
    return errors


def validate_fiscal_year_configuration(config: FiscalYearConfiguration) -> list[str]:
    """Return a list of validation issues for the provided configuration."""

    errors: list[str] = []
    if not config.currency.strip():
        errors.append(_format_scope(config.fiscal_year, "currency must be provided"))
    errors.extend(_validate_slabs(f"{config.fiscal_year}.slabs", config.slabs))
    return errors


def validate_trade_configuration(config: TradeConfiguration) -> list[str]:
    """Return a list of validation issues for the trade rate tables."""

    errors: list[str] = []
    errors.extend(_validate_countries(config.countries))
    errors.extend(_validate_categories(config.categories))
    errors.extend(_validate_exchange_rates(config.exchange_rates))
    return errors


def validate_all_fiscal_years(
    fiscal_years: Sequence[str] | None = None,
) -> dict[str, list[str]]:
    """Validate all configured fiscal years and return issues keyed by label."""

    targets = fiscal_years or available_fiscal_years()
    results: dict[str, list[str]] = {}

    for label in targets:
        config = load_fiscal_year_configuration(label)
        results[label] = validate_fiscal_year_configuration(config)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate configured fiscal years and trade rates, reporting issues "
            "helpful to administrators."
        )
    )
    parser.add_argument(
        "fiscal_years",
        nargs="*",
        help="Specific fiscal year labels to validate (defaults to all configured years)",
    )
    parser.add_argument(
        "--skip-trade",
        action="store_true",
        help="Do not validate the trade rate configuration",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    fiscal_years = args.fiscal_years or available_fiscal_years()

    if not fiscal_years:
        parser.print_help()
        return 1

    exit_code = 0

    for label in fiscal_years:
        try:
            config = load_fiscal_year_configuration(label)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{label}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_fiscal_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{label}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{label}] OK")

    if not args.skip_trade:
        try:
            trade = load_trade_configuration()
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[trade] failed to load configuration: {error}")
            return 1

        issues = validate_trade_configuration(trade)
        if issues:
            exit_code = 1
            print(f"[trade] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print("[trade] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
