"""Pydantic models describing the fiscal year and trade configuration schema."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class InvalidSlabConfigError(ConfigurationError):
    """Raised when a slab definition is malformed or inconsistent."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class SlabConfig(ImmutableModel):
    """A single slab row as stored in the configuration feed."""

    lower_bound: float = Field(alias="from")
    upper_bound: float | None = Field(default=None, alias="to")
    rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> Self:
        if self.lower_bound < 0:
            raise ConfigurationError("Slab lower bounds must be non-negative")
        if self.rate < 0 or self.rate > 1:
            raise ConfigurationError("Slab rates must be fractions between 0 and 1")
        if self.upper_bound is not None and self.upper_bound <= self.lower_bound:
            raise ConfigurationError("Slab upper bounds must exceed their lower bound")
        return self


class FiscalYearConfiguration(ImmutableModel):
    """Slab table and metadata for a single fiscal year."""

    fiscal_year: str
    currency: str = "BDT"
    slabs: Sequence[SlabConfig]
    meta: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("fiscal_year", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> str:
        if value is None:
            raise ConfigurationError("Fiscal year label is required")
        label = str(value).strip()
        if not label:
            raise ConfigurationError("Fiscal year label is required")
        return label

    @field_validator("meta", mode="before")
    @classmethod
    def _default_meta(cls, value: Any) -> Mapping[str, Any]:
        return value or {}

    @model_validator(mode="after")
    def _validate_slabs(self) -> Self:
        if not self.slabs:
            raise ConfigurationError("At least one tax slab must be defined")
        return self


class CountryRate(ImmutableModel):
    """Per-country import and export duty percentages."""

    code: str
    name: str
    import_rate: float = 0.0
    export_rate: float = 0.0

    @field_validator("code", mode="before")
    @classmethod
    def _normalise_code(cls, value: Any) -> str:
        return str(value or "").strip().upper()

    @model_validator(mode="after")
    def _validate_rates(self) -> Self:
        if not self.code:
            raise ConfigurationError("Country codes are required")
        for label, value in (("import", self.import_rate), ("export", self.export_rate)):
            if value < 0 or value > 100:
                raise ConfigurationError(
                    f"Country {self.code} {label} rate must be a percentage between 0 and 100"
                )
        return self

    def rate_for(self, trade_type: str) -> float:
        return self.import_rate if trade_type == "import" else self.export_rate


class ProductCategoryRate(ImmutableModel):
    """Base duty percentage applied to a product category."""

    id: str
    name: str
    base_rate: float = 0.0

    @model_validator(mode="after")
    def _validate_rate(self) -> Self:
        if self.base_rate < 0 or self.base_rate > 100:
            raise ConfigurationError(
                f"Category {self.id} base rate must be a percentage between 0 and 100"
            )
        return self


class TradeConfiguration(ImmutableModel):
    """Country/category duty tables and exchange rates for trade calculations."""

    countries: Sequence[CountryRate] = Field(default_factory=tuple)
    categories: Sequence[ProductCategoryRate] = Field(default_factory=tuple)
    exchange_rates: Mapping[str, float] = Field(default_factory=dict)

    @field_validator("exchange_rates", mode="before")
    @classmethod
    def _coerce_exchange_rates(cls, value: Any) -> Mapping[str, float]:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {str(key).upper(): float(rate) for key, rate in value.items()}
        raise ConfigurationError("Exchange rates must be provided as a mapping")

    def get_country(self, code: str) -> CountryRate:
        wanted = code.strip().upper()
        for country in self.countries:
            if country.code == wanted:
                return country
        raise KeyError(code)

    def get_category(self, category_id: str) -> ProductCategoryRate:
        for category in self.categories:
            if category.id == category_id:
                return category
        raise KeyError(category_id)


class FiscalYearManifestEntry(ImmutableModel):
    """Entry describing a supported fiscal year in the manifest."""

    fiscal_year: str
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @field_validator("fiscal_year", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> str:
        return str(value).strip()

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.fiscal_year}.yaml"


class FiscalYearManifest(ImmutableModel):
    """Manifest describing the available fiscal year configuration files."""

    years: Sequence[FiscalYearManifestEntry]
    default_fiscal_year: str | None = None
    trade_file: str = "trade.yaml"

    @model_validator(mode="after")
    def _validate_years(self) -> Self:
        seen: set[str] = set()
        for entry in self.years:
            if entry.fiscal_year in seen:
                raise ConfigurationError(
                    f"Duplicate fiscal year {entry.fiscal_year} declared in the configuration manifest"
                )
            seen.add(entry.fiscal_year)
        if self.default_fiscal_year is not None and self.default_fiscal_year not in seen:
            raise ConfigurationError(
                f"Default fiscal year {self.default_fiscal_year} is not declared in the manifest"
            )
        return self

    def get_entry(self, fiscal_year: str) -> FiscalYearManifestEntry:
        for entry in self.years:
            if entry.fiscal_year == fiscal_year:
                return entry
        raise KeyError(fiscal_year)

    @computed_field
    @property
    def supported_fiscal_years(self) -> tuple[str, ...]:
        return tuple(sorted(entry.fiscal_year for entry in self.years))

    @property
    def resolved_default(self) -> str | None:
        if self.default_fiscal_year:
            return self.default_fiscal_year
        supported = self.supported_fiscal_years
        return supported[-1] if supported else None


__all__ = [
    "ConfigurationError",
    "CountryRate",
    "FiscalYearConfiguration",
    "FiscalYearManifest",
    "FiscalYearManifestEntry",
    "ImmutableModel",
    "InvalidSlabConfigError",
    "ProductCategoryRate",
    "SlabConfig",
    "TradeConfiguration",
    "ValidationError",
]
