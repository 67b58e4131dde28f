"""Pydantic models describing the public API surface."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from bdtax.backend.services.calculators import TradeType

__all__ = [
    "TaxCalculationRequest",
    "TradeCalculationRequest",
    "TradeHistoryEntry",
    "TaxRequestSubmission",
    "OfficerDecision",
    "OfficerCalculationRequest",
    "BreakdownEntry",
    "TaxSummaryLabels",
    "TaxSummary",
    "TaxResultPayload",
    "TaxResponseMeta",
    "TaxCalculationResponse",
    "TradeResultPayload",
    "TradeInputEcho",
    "TradeResponseMeta",
    "TradeCalculationResponse",
    "format_validation_error",
]


FISCAL_YEAR_PATTERN = re.compile(r"[0-9]{4}-[0-9]{4}")


def _none_as_zero(value: Any) -> Any:
    return 0.0 if value is None or value == "" else value


class TaxCalculationRequest(BaseModel):
    """Payload accepted by the income tax calculation endpoint.

    Amounts are deliberately unconstrained: negative and non-finite values are
    clamped by the engine rather than rejected here.
    """

    model_config = ConfigDict(extra="forbid")

    total_income: float = 0.0
    total_expense: float = 0.0
    fiscal_year: str | None = None
    slabs: list[dict[str, Any]] | None = None
    locale: str = Field(default="en")

    @field_validator("total_income", "total_expense", mode="before")
    @classmethod
    def _default_amounts(cls, value: Any) -> Any:
        return _none_as_zero(value)

    @field_validator("fiscal_year", mode="before")
    @classmethod
    def _normalise_fiscal_year(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        if not text:
            return None
        if not FISCAL_YEAR_PATTERN.fullmatch(text):
            raise ValueError("Fiscal year must look like 2026-2027")
        return text

    @field_validator("locale", mode="before")
    @classmethod
    def _normalise_locale(cls, value: Any) -> str:
        if value is None:
            return "en"
        text = str(value).strip()
        return text or "en"

    @field_validator("slabs", mode="before")
    @classmethod
    def _require_slab_list(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, Mapping) or isinstance(value, (str, bytes)):
            raise ValueError("Slabs must be provided as a list of slab objects")
        return value


class TradeCalculationRequest(BaseModel):
    """Payload accepted by the trade duty calculation endpoint."""

    model_config = ConfigDict(extra="forbid")

    type: TradeType
    amount: float = 0.0
    currency: Literal["BDT", "USD"] = "BDT"
    country_rate: float | None = None
    category_rate: float | None = None
    country_code: str | None = None
    category_id: str | None = None
    product_name: str | None = Field(default=None, max_length=120)
    locale: str = Field(default="en")

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> TradeType:
        return TradeType.parse(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _default_amount(cls, value: Any) -> Any:
        return _none_as_zero(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalise_currency(cls, value: Any) -> str:
        if value is None:
            return "BDT"
        return str(value).strip().upper() or "BDT"

    @field_validator("country_code", "category_id", "product_name", mode="before")
    @classmethod
    def _strip_optional_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("locale", mode="before")
    @classmethod
    def _normalise_locale(cls, value: Any) -> str:
        if value is None:
            return "en"
        text = str(value).strip()
        return text or "en"


class TradeHistoryEntry(TradeCalculationRequest):
    """Trade calculation saved to the caller's import/export history."""

    product_name: str = Field(..., min_length=2, max_length=120)

    @field_validator("amount")
    @classmethod
    def _require_positive_amount(cls, value: float) -> float:
        if not value > 0:
            raise ValueError("Amount must be greater than zero")
        return value


class TaxRequestSubmission(TaxCalculationRequest):
    """Citizen request for officer review of a tax calculation."""

    draft: bool = False


class OfficerDecision(BaseModel):
    """Officer note attached to an approval or rejection."""

    model_config = ConfigDict(extra="forbid")

    note: str | None = Field(default=None, max_length=500)


class OfficerCalculationRequest(TaxCalculationRequest):
    """Calculation recorded by an officer on behalf of a citizen."""

    citizen_id: str = Field(..., min_length=1)


class BreakdownEntry(BaseModel):
    """One slab of the progressive breakdown in the response."""

    model_config = ConfigDict(extra="forbid")

    label: str
    lower_bound: float = Field(alias="from")
    upper_bound: float | None = Field(alias="to")
    rate: float
    rate_label: str
    amount_in_slab: float
    tax_for_slab: float


class TaxSummaryLabels(BaseModel):
    """Localized labels for summary fields."""

    model_config = ConfigDict(extra="forbid")

    total_income: str
    total_expense: str
    taxable_income: str
    calculated_tax: str
    effective_tax_rate: str


class TaxSummary(BaseModel):
    """Headline figures of an income tax calculation."""

    model_config = ConfigDict(extra="forbid")

    total_income: float
    total_expense: float
    taxable_income: float
    calculated_tax: float
    effective_tax_rate: float
    labels: TaxSummaryLabels


class TaxResultPayload(BaseModel):
    """Engine result as persisted to calculation history."""

    model_config = ConfigDict(extra="forbid")

    fiscal_year: str
    total_income: float
    total_expense: float
    taxable_income: float
    calculated_tax: float
    breakdown: list[dict[str, Any]]


class TaxResponseMeta(BaseModel):
    """Metadata returned alongside the tax calculation output."""

    model_config = ConfigDict(extra="forbid")

    fiscal_year: str
    locale: str
    currency: str
    slab_source: Literal["request", "configuration", "default"]
    profiling: dict[str, float] | None = None


class TaxCalculationResponse(BaseModel):
    """Full response payload produced by the income tax service."""

    model_config = ConfigDict(extra="forbid")

    result: TaxResultPayload
    summary: TaxSummary
    breakdown: list[BreakdownEntry]
    meta: TaxResponseMeta


class TradeResultPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rate: float
    calculated_tax: float


class TradeInputEcho(BaseModel):
    """Resolved inputs used for a trade duty calculation."""

    model_config = ConfigDict(extra="forbid")

    type: str
    amount: float
    input_amount: float
    input_currency: str
    usd_bdt_rate: float | None
    country_rate: float
    category_rate: float
    country_code: str | None
    category_id: str | None
    product_name: str | None


class TradeResponseMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    locale: str
    type_label: str
    labels: dict[str, str]


class TradeCalculationResponse(BaseModel):
    """Full response payload produced by the trade duty service."""

    model_config = ConfigDict(extra="forbid")

    result: TradeResultPayload
    input: TradeInputEcho
    meta: TradeResponseMeta


def format_validation_error(error: ValidationError, *, subject: str = "calculation") -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid {subject} payload: {details}"
