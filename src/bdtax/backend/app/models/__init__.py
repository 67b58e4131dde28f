"""Typed request/response models shared across the calculation services.

Requests are validated with Pydantic at the HTTP boundary; the calculators
themselves stay permissive and operate on plain numbers. Response models are
used to check the shape of what the services hand back to Flask.
"""

from .api import (
    BreakdownEntry,
    OfficerCalculationRequest,
    OfficerDecision,
    TaxCalculationRequest,
    TaxCalculationResponse,
    TaxRequestSubmission,
    TaxResponseMeta,
    TaxResultPayload,
    TaxSummary,
    TaxSummaryLabels,
    TradeCalculationRequest,
    TradeCalculationResponse,
    TradeHistoryEntry,
    TradeInputEcho,
    TradeResponseMeta,
    TradeResultPayload,
    format_validation_error,
)

__all__ = [
    "BreakdownEntry",
    "OfficerCalculationRequest",
    "OfficerDecision",
    "TaxCalculationRequest",
    "TaxCalculationResponse",
    "TaxRequestSubmission",
    "TaxResponseMeta",
    "TaxResultPayload",
    "TaxSummary",
    "TaxSummaryLabels",
    "TradeCalculationRequest",
    "TradeCalculationResponse",
    "TradeHistoryEntry",
    "TradeInputEcho",
    "TradeResponseMeta",
    "TradeResultPayload",
    "format_validation_error",
]
