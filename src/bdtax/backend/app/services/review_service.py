"""Officer review workflow and calculation history.

Citizens save tax and trade calculations to their history or send tax
calculations to an officer for review. Officers approve or reject submitted
requests; an approval recomputes the tax from the submitted totals against the
configured slabs for the request's fiscal year rather than trusting the stored
figures.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping
from uuid import uuid4

from bdtax.backend.services.calculators import TaxResult, round_currency

from .calculation_service import run_income_tax
from .review_store import (
    ActivityLogEntry,
    ActivityType,
    CalculationRecord,
    InMemoryReviewRepository,
    InvalidTransitionError,
    RecordNotFoundError,
    RequestStatus,
    ReviewRepository,
    SQLiteReviewRepository,
    TaxRequestRecord,
    TradeRecord,
)

logger = logging.getLogger(__name__)

TRADE_HISTORY_LIMIT = 200


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class ReviewService:
    """Coordinate history, review requests and the officer audit log."""

    def __init__(
        self,
        repository: ReviewRepository,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow
        self._new_id = id_factory or _new_id

    @property
    def repository(self) -> ReviewRepository:
        return self._repository

    def _log_activity(
        self,
        officer_id: str,
        activity_type: ActivityType,
        description: str,
        *,
        target_user_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            id=self._new_id(),
            officer_id=officer_id,
            activity_type=activity_type,
            description=description,
            target_user_id=target_user_id,
            metadata=dict(metadata or {}),
            created_at=self._clock(),
        )
        self._repository.add_activity(entry)
        logger.info("%s by officer %s: %s", activity_type.value, officer_id, description)
        return entry

    def save_calculation(
        self,
        user_id: str,
        result: TaxResult,
        *,
        officer_id: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> CalculationRecord:
        """Store ``result`` in ``user_id``'s calculation history."""

        calculation_data = result.as_dict()
        if extra:
            calculation_data.update(extra)

        record = CalculationRecord(
            id=self._new_id(),
            user_id=user_id,
            officer_id=officer_id,
            fiscal_year=result.fiscal_year,
            total_income=result.total_income,
            total_expense=result.total_expense,
            taxable_income=result.taxable_income,
            calculated_tax=result.calculated_tax,
            calculation_data=calculation_data,
            created_at=self._clock(),
        )
        self._repository.add_calculation(record)
        return record

    def get_calculation(self, record_id: str) -> CalculationRecord:
        return self._repository.get_calculation(record_id)

    def list_calculations(self, user_id: str | None = None) -> list[CalculationRecord]:
        return list(self._repository.list_calculations(user_id))

    def save_trade(
        self,
        user_id: str,
        calculation: Mapping[str, Any],
        *,
        country: str = "",
        product_category: str = "",
    ) -> TradeRecord:
        """Store a trade duty calculation as returned by ``calculate_trade_duty``."""

        inputs = calculation["input"]
        result = calculation["result"]
        record = TradeRecord(
            id=self._new_id(),
            user_id=user_id,
            type=inputs["type"],
            country=country,
            product_category=product_category,
            product_name=inputs.get("product_name") or "",
            amount=inputs["amount"],
            calculated_tax=result["calculated_tax"],
            calculation_data={
                "rate": result["rate"],
                "country_rate": inputs.get("country_rate"),
                "category_rate": inputs.get("category_rate"),
                "input_currency": inputs.get("input_currency"),
                "input_amount": inputs.get("input_amount"),
                "usd_bdt_rate": inputs.get("usd_bdt_rate"),
                "country_code": inputs.get("country_code"),
                "category_id": inputs.get("category_id"),
            },
            created_at=self._clock(),
        )
        self._repository.add_trade(record)
        return record

    def list_trades(
        self, user_id: str | None = None, *, limit: int | None = TRADE_HISTORY_LIMIT
    ) -> list[TradeRecord]:
        return list(self._repository.list_trades(user_id, limit=limit))

    def submit_request(
        self, citizen_id: str, result: TaxResult, *, draft: bool = False
    ) -> TaxRequestRecord:
        """Create a review request, either as a draft or directly submitted."""

        now = self._clock()
        record = TaxRequestRecord(
            id=self._new_id(),
            citizen_id=citizen_id,
            fiscal_year=result.fiscal_year,
            total_income=result.total_income,
            total_expense=result.total_expense,
            taxable_income=result.taxable_income,
            calculated_tax=result.calculated_tax,
            calculation_data=result.as_dict(),
            status=RequestStatus.DRAFT if draft else RequestStatus.SUBMITTED,
            created_at=now,
            updated_at=now,
        )
        self._repository.add_request(record)
        logger.info("Review request %s created (%s)", record.id, record.status.value)
        return record

    def get_request(self, request_id: str) -> TaxRequestRecord:
        return self._repository.get_request(request_id)

    def submit_draft(self, request_id: str, citizen_id: str) -> TaxRequestRecord:
        """Move a citizen's draft request into the officer queue."""

        record = self._repository.get_request(request_id)
        if record.citizen_id != citizen_id:
            raise PermissionError("Only the owner can submit a draft request")
        return self._repository.transition_request(
            request_id,
            RequestStatus.DRAFT,
            RequestStatus.SUBMITTED,
            updated_at=self._clock(),
        )

    def pending_requests(self) -> list[TaxRequestRecord]:
        return list(self._repository.list_requests(status=RequestStatus.SUBMITTED))

    def list_requests(
        self,
        *,
        citizen_id: str | None = None,
        status: RequestStatus | None = None,
    ) -> list[TaxRequestRecord]:
        return list(self._repository.list_requests(status=status, citizen_id=citizen_id))

    def approve(
        self, request_id: str, officer_id: str, note: str | None = None
    ) -> tuple[TaxRequestRecord, CalculationRecord]:
        """Approve a submitted request and record the recomputed calculation."""

        pending = self._repository.get_request(request_id)
        if pending.status is not RequestStatus.SUBMITTED:
            raise InvalidTransitionError(
                f"Request {request_id} is {pending.status.value}, expected submitted"
            )

        result, _ = run_income_tax(
            pending.total_income, pending.total_expense, pending.fiscal_year
        )

        approved = self._repository.transition_request(
            request_id,
            RequestStatus.SUBMITTED,
            RequestStatus.APPROVED,
            updated_at=self._clock(),
            officer_id=officer_id,
            officer_note=note,
        )
        calculation = self.save_calculation(
            pending.citizen_id,
            result,
            officer_id=officer_id,
            extra={"created_by": "officer", "source_request_id": request_id},
        )
        self._log_activity(
            officer_id,
            ActivityType.REQUEST_APPROVED,
            f"Approved tax review request {request_id}",
            target_user_id=pending.citizen_id,
            metadata={"request_id": request_id, "calculated_tax": result.calculated_tax},
        )
        if result.calculated_tax != pending.calculated_tax:
            logger.warning(
                "Request %s submitted tax %.2f differs from recomputed %.2f",
                request_id,
                pending.calculated_tax,
                result.calculated_tax,
            )
        return approved, calculation

    def reject(
        self, request_id: str, officer_id: str, note: str | None = None
    ) -> TaxRequestRecord:
        """Reject a submitted request."""

        rejected = self._repository.transition_request(
            request_id,
            RequestStatus.SUBMITTED,
            RequestStatus.REJECTED,
            updated_at=self._clock(),
            officer_id=officer_id,
            officer_note=note,
        )
        self._log_activity(
            officer_id,
            ActivityType.REQUEST_REJECTED,
            f"Rejected tax review request {request_id}",
            target_user_id=rejected.citizen_id,
            metadata={"request_id": request_id},
        )
        return rejected

    def officer_calculation(
        self,
        officer_id: str,
        citizen_id: str,
        total_income: Any,
        total_expense: Any,
        fiscal_year: str | None = None,
    ) -> CalculationRecord:
        """Record a calculation an officer performs on behalf of a citizen."""

        result, _ = run_income_tax(total_income, total_expense, fiscal_year)
        record = self.save_calculation(
            citizen_id,
            result,
            officer_id=officer_id,
            extra={"created_by": "officer"},
        )
        self._log_activity(
            officer_id,
            ActivityType.OFFICER_CALC_CREATE,
            f"Created tax calculation {record.id}",
            target_user_id=citizen_id,
            metadata={"calculation_id": record.id, "calculated_tax": result.calculated_tax},
        )
        return record

    def activity_log(self, officer_id: str | None = None) -> list[ActivityLogEntry]:
        return list(self._repository.list_activity(officer_id))


def trade_totals(records: Iterable[TradeRecord]) -> dict[str, float]:
    """Sum amounts and duty across ``records``; ``final_total`` is their sum."""

    amount = 0.0
    calculated_tax = 0.0
    for record in records:
        amount += record.amount
        calculated_tax += record.calculated_tax
    return {
        "amount": round_currency(amount),
        "calculated_tax": round_currency(calculated_tax),
        "final_total": round_currency(amount + calculated_tax),
    }


def _parse_positive_int(value: str | None, *, env: str) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %s", env, value)
        return None
    if parsed <= 0:
        logger.warning("Ignoring non-positive value for %s: %s", env, value)
        return None
    return parsed


def build_review_service() -> ReviewService:
    """Create the workflow service from ``BDTAX_REQUEST_DB``/``BDTAX_HISTORY_CAPACITY``."""

    db_path = os.getenv("BDTAX_REQUEST_DB")
    if db_path:
        return ReviewService(SQLiteReviewRepository(Path(db_path).expanduser()))

    capacity = _parse_positive_int(
        os.getenv("BDTAX_HISTORY_CAPACITY"), env="BDTAX_HISTORY_CAPACITY"
    )
    if capacity is not None:
        return ReviewService(InMemoryReviewRepository(max_history=capacity))
    return ReviewService(InMemoryReviewRepository())


__all__ = [
    "InvalidTransitionError",
    "RecordNotFoundError",
    "ReviewService",
    "TRADE_HISTORY_LIMIT",
    "build_review_service",
    "trade_totals",
]
