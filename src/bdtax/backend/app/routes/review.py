"""Calculation and trade history, officer review requests and the officer audit log."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, Response, current_app, request

from bdtax.backend.app.http import (
    Identity,
    ProblemResponse,
    problem_response,
    require_reviewer,
    resolve_identity,
)
from bdtax.backend.app.localization import normalise_locale
from bdtax.backend.app.models import (
    OfficerCalculationRequest,
    OfficerDecision,
    TaxCalculationRequest,
    TaxRequestSubmission,
    TradeHistoryEntry,
)
from bdtax.backend.app.services import (
    ReviewService,
    build_json_response,
    calculate_trade_duty,
    parse_json_payload,
    run_income_tax,
    validate_payload,
)
from bdtax.backend.app.services.calculation_service import trade_party_names
from bdtax.backend.app.services.export_service import render_csv, render_pdf
from bdtax.backend.app.services.review_service import trade_totals
from bdtax.backend.app.services.review_store import CalculationRecord, RequestStatus

EXTENSION_KEY = "bdtax.review"

blueprint = Blueprint("review", __name__, url_prefix="/api/v1")


def _service() -> ReviewService:
    return current_app.extensions[EXTENSION_KEY]


def _owned_calculation(
    record_id: str, identity: Identity
) -> CalculationRecord | ProblemResponse:
    record = _service().get_calculation(record_id)
    if record.user_id != identity.user_id and not identity.is_reviewer:
        return problem_response(
            "forbidden",
            status=HTTPStatus.FORBIDDEN,
            message="Calculation belongs to another user",
        )
    return record


def _decision_note() -> str | None:
    data = request.get_json(silent=True) or {}
    decision: OfficerDecision = validate_payload(OfficerDecision, data, "decision")
    return decision.note


@blueprint.post("/history")
def save_history_entry() -> tuple[Any, int]:
    """Save a calculation to the caller's history.

    Officers and admins may include ``citizen_id`` to record a calculation on
    a citizen's behalf; those are written to the audit log.
    """

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    payload = parse_json_payload(request, resolve_locale=False)
    if "citizen_id" in payload:
        if not identity.is_reviewer:
            return problem_response(
                "forbidden",
                status=HTTPStatus.FORBIDDEN,
                message="Only officers can record calculations for citizens",
            ).to_response()
        officer_request: OfficerCalculationRequest = validate_payload(
            OfficerCalculationRequest, payload, "calculation"
        )
        record = _service().officer_calculation(
            identity.user_id,
            officer_request.citizen_id,
            officer_request.total_income,
            officer_request.total_expense,
            officer_request.fiscal_year,
        )
        return build_json_response(record.as_dict(), HTTPStatus.CREATED)

    calculation: TaxCalculationRequest = validate_payload(
        TaxCalculationRequest, payload, "calculation"
    )
    result, _ = run_income_tax(
        calculation.total_income,
        calculation.total_expense,
        calculation.fiscal_year,
        calculation.slabs,
    )
    record = _service().save_calculation(
        identity.user_id, result, extra={"created_by": "citizen"}
    )
    return build_json_response(record.as_dict(), HTTPStatus.CREATED)


@blueprint.get("/history")
def list_history() -> tuple[Any, int]:
    """List saved calculations, newest first.

    Citizens only see their own history; reviewers may pass ``?user_id=``.
    """

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    user_id: str | None = identity.user_id
    if identity.is_reviewer:
        user_id = request.args.get("user_id") or None

    records = _service().list_calculations(user_id)
    return build_json_response({"calculations": [record.as_dict() for record in records]})


@blueprint.get("/history/<record_id>/csv")
def export_history_csv(record_id: str):
    """Download a saved calculation as CSV in the requested locale."""

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    record = _owned_calculation(record_id, identity)
    if isinstance(record, ProblemResponse):
        return record.to_response()

    locale = normalise_locale(request.args.get("locale"))
    return Response(
        render_csv(record, locale),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename=bdtax-{record.id}.csv"},
    )


@blueprint.get("/history/<record_id>/pdf")
def export_history_pdf(record_id: str):
    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    record = _owned_calculation(record_id, identity)
    if isinstance(record, ProblemResponse):
        return record.to_response()

    return Response(
        render_pdf(record),
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=bdtax-{record.id}.pdf"},
    )


@blueprint.post("/trade-history")
def save_trade_entry() -> tuple[Any, int]:
    """Calculate an import/export duty and save it to the caller's history."""

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    payload = parse_json_payload(request, resolve_locale=False)
    entry: TradeHistoryEntry = validate_payload(TradeHistoryEntry, payload, "trade")
    calculation = calculate_trade_duty(entry)
    country, category = trade_party_names(entry.country_code, entry.category_id)

    record = _service().save_trade(
        identity.user_id, calculation, country=country, product_category=category
    )
    return build_json_response(record.as_dict(), HTTPStatus.CREATED)


@blueprint.get("/trade-history")
def list_trade_history() -> tuple[Any, int]:
    """List saved trade records, newest first, with running totals.

    Citizens only see their own records; reviewers may pass ``?user_id=``.
    """

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    user_id: str | None = identity.user_id
    if identity.is_reviewer:
        user_id = request.args.get("user_id") or None

    records = _service().list_trades(user_id)
    return build_json_response(
        {
            "records": [record.as_dict() for record in records],
            "totals": trade_totals(records),
        }
    )


@blueprint.post("/requests")
def create_request() -> tuple[Any, int]:
    """Create a review request from the submitted totals."""

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    payload = parse_json_payload(request, resolve_locale=False)
    submission: TaxRequestSubmission = validate_payload(
        TaxRequestSubmission, payload, "request"
    )
    result, _ = run_income_tax(
        submission.total_income,
        submission.total_expense,
        submission.fiscal_year,
        submission.slabs,
    )
    record = _service().submit_request(identity.user_id, result, draft=submission.draft)
    return build_json_response(record.as_dict(), HTTPStatus.CREATED)


@blueprint.get("/requests")
def list_requests() -> tuple[Any, int]:
    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    status_param = request.args.get("status")
    status = RequestStatus(status_param.strip().lower()) if status_param else None

    citizen_id = None if identity.is_reviewer else identity.user_id
    records = _service().list_requests(citizen_id=citizen_id, status=status)
    return build_json_response({"requests": [record.as_dict() for record in records]})


@blueprint.post("/requests/<request_id>/submit")
def submit_request(request_id: str) -> tuple[Any, int]:
    """Move a draft into the officer queue."""

    identity = resolve_identity(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    record = _service().submit_draft(request_id, identity.user_id)
    return build_json_response(record.as_dict())


@blueprint.post("/requests/<request_id>/approve")
def approve_request(request_id: str) -> tuple[Any, int]:
    """Approve a submitted request, recording the recomputed calculation."""

    identity = require_reviewer(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    approved, calculation = _service().approve(
        request_id, identity.user_id, _decision_note()
    )
    return build_json_response(
        {"request": approved.as_dict(), "calculation": calculation.as_dict()}
    )


@blueprint.post("/requests/<request_id>/reject")
def reject_request(request_id: str) -> tuple[Any, int]:
    identity = require_reviewer(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    rejected = _service().reject(request_id, identity.user_id, _decision_note())
    return build_json_response({"request": rejected.as_dict()})


@blueprint.get("/activity")
def list_activity() -> tuple[Any, int]:
    """Return the officer audit log.

    Officers see their own actions; admins see everything or filter with
    ``?officer_id=``.
    """

    identity = require_reviewer(request)
    if isinstance(identity, ProblemResponse):
        return identity.to_response()

    if identity.role == "admin":
        officer_id = request.args.get("officer_id") or None
    else:
        officer_id = identity.user_id

    entries = _service().activity_log(officer_id)
    return build_json_response({"activity": [entry.as_dict() for entry in entries]})
