"""REST endpoints for income tax and trade duty calculations."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from bdtax.backend.app.services import (
    build_json_response,
    calculate_income_tax,
    calculate_trade_duty,
    parse_json_payload,
)

blueprint = Blueprint("calculations", __name__, url_prefix="/api/v1/calculations")


@blueprint.post("/tax")
def create_tax_calculation() -> tuple[Any, int]:
    """Calculate progressive income tax for the submitted totals."""

    payload = parse_json_payload(request)
    return build_json_response(calculate_income_tax(payload))


@blueprint.post("/trade")
def create_trade_calculation() -> tuple[Any, int]:
    """Calculate import or export duty for the submitted amount."""

    payload = parse_json_payload(request)
    return build_json_response(calculate_trade_duty(payload))
