"""Configuration loader wrapping the shared schema models."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from bdtax.backend.services.calculators.slabs import (
    SlabTable,
    TaxSlab,
    validate_slab_sequence,
)

from .schema import (
    ConfigurationError,
    CountryRate,
    FiscalYearConfiguration,
    FiscalYearManifest,
    FiscalYearManifestEntry,
    InvalidSlabConfigError,
    ProductCategoryRate,
    SlabConfig,
    TradeConfiguration,
)

_LOGGER = logging.getLogger(__name__)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_manifest() -> FiscalYearManifest:
    """Load and cache the configuration manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Configuration manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return FiscalYearManifest.model_validate(raw_manifest)
    except ValidationError as error:
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def to_slab_table(configuration: FiscalYearConfiguration) -> SlabTable:
    """Convert a validated configuration into the engine's slab table."""

    slabs = tuple(
        TaxSlab(
            lower_bound=slab.lower_bound,
            upper_bound=slab.upper_bound,
            rate=slab.rate,
        )
        for slab in configuration.slabs
    )
    return SlabTable(fiscal_year=configuration.fiscal_year, slabs=slabs)


@lru_cache(maxsize=16)
def load_fiscal_year_configuration(fiscal_year: str) -> FiscalYearConfiguration:
    """Load configuration for the specified fiscal year from disk."""

    try:
        manifest_entry = load_manifest().get_entry(fiscal_year)
    except KeyError as exc:
        raise FileNotFoundError(
            f"Configuration for fiscal year {fiscal_year} not declared in manifest"
        ) from exc

    config_file = CONFIG_DIRECTORY / manifest_entry.resolved_filename
    if not config_file.exists():
        raise FileNotFoundError(
            f"Configuration file for fiscal year {fiscal_year} missing: {config_file.name}"
        )

    raw_config = _load_yaml(config_file)
    raw_config.setdefault("fiscal_year", fiscal_year)

    try:
        configuration = FiscalYearConfiguration.model_validate(raw_config)
    except ValidationError as error:
        raise ConfigurationError(
            f"Configuration validation failed for {fiscal_year}: {error}"
        ) from error

    if configuration.fiscal_year != fiscal_year:
        raise ConfigurationError(
            "Configuration fiscal year mismatch: "
            f"expected {fiscal_year}, found {configuration.fiscal_year}"
        )

    try:
        validate_slab_sequence(to_slab_table(configuration).slabs)
    except InvalidSlabConfigError as error:
        raise InvalidSlabConfigError(f"{fiscal_year}: {error}") from error

    _LOGGER.debug(
        "Loaded %d slabs for fiscal year %s", len(configuration.slabs), fiscal_year
    )
    return configuration


def available_fiscal_years() -> Sequence[str]:
    """Return the fiscal year labels declared in the manifest."""

    return load_manifest().supported_fiscal_years


def default_fiscal_year() -> str | None:
    """Return the manifest's default fiscal year label."""

    return load_manifest().resolved_default


@lru_cache(maxsize=1)
def load_trade_configuration() -> TradeConfiguration:
    """Load country/category duty rates and exchange rates."""

    trade_file = CONFIG_DIRECTORY / load_manifest().trade_file
    if not trade_file.exists():
        raise FileNotFoundError(f"Trade configuration file missing: {trade_file.name}")

    try:
        return TradeConfiguration.model_validate(_load_yaml(trade_file))
    except ValidationError as error:
        raise ConfigurationError(f"Trade configuration validation failed: {error}") from error


def clear_caches() -> None:
    """Drop cached configuration so edited files are re-read."""

    load_manifest.cache_clear()
    load_fiscal_year_configuration.cache_clear()
    load_trade_configuration.cache_clear()


__all__ = [
    "CONFIG_DIRECTORY",
    "ConfigurationError",
    "CountryRate",
    "FiscalYearConfiguration",
    "FiscalYearManifest",
    "FiscalYearManifestEntry",
    "InvalidSlabConfigError",
    "MANIFEST_FILE",
    "ProductCategoryRate",
    "SlabConfig",
    "TradeConfiguration",
    "available_fiscal_years",
    "clear_caches",
    "default_fiscal_year",
    "load_fiscal_year_configuration",
    "load_manifest",
    "load_trade_configuration",
    "to_slab_table",
]
