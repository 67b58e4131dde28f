"""Service-layer helpers for the BDTax web application."""

from .calculation_service import (
    calculate_income_tax,
    calculate_trade_duty,
    run_income_tax,
    validate_payload,
)
from .request_parser import parse_json_payload
from .response_builder import build_json_response
from .review_service import ReviewService, build_review_service

__all__ = [
    "ReviewService",
    "build_json_response",
    "build_review_service",
    "calculate_income_tax",
    "calculate_trade_duty",
    "parse_json_payload",
    "run_income_tax",
    "validate_payload",
]
