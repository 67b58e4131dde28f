"""Tests for the officer review workflow and its repositories."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path

import pytest

from bdtax.backend.app.services import review_service as review_module
from bdtax.backend.app.services.calculation_service import calculate_trade_duty
from bdtax.backend.app.services.review_service import ReviewService, build_review_service
from bdtax.backend.app.services.review_store import (
    ActivityType,
    InMemoryReviewRepository,
    InvalidTransitionError,
    RecordNotFoundError,
    RequestStatus,
    SQLiteReviewRepository,
)
from bdtax.backend.services.calculators import calculate_tax


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture(params=["memory", "sqlite"])
def service(request: pytest.FixtureRequest, tmp_path: Path) -> ReviewService:
    if request.param == "memory":
        repository = InMemoryReviewRepository()
    else:
        repository = SQLiteReviewRepository(tmp_path / "review.db")
    ids = count(1)
    return ReviewService(
        repository,
        clock=FakeClock(datetime(2026, 7, 1, tzinfo=timezone.utc)),
        id_factory=lambda: f"id-{next(ids)}",
    )


def test_history_is_listed_newest_first_per_user(service: ReviewService) -> None:
    first = service.save_calculation("alice", calculate_tax(500_000, 0))
    service.save_calculation("bob", calculate_tax(600_000, 0))
    second = service.save_calculation("alice", calculate_tax(700_000, 0))

    history = service.list_calculations("alice")

    assert [record.id for record in history] == [second.id, first.id]
    assert len(service.list_calculations()) == 3
    assert service.get_calculation(first.id).calculation_data["calculated_tax"] == 10_000


def test_unknown_calculation_raises(service: ReviewService) -> None:
    with pytest.raises(RecordNotFoundError):
        service.get_calculation("missing")


def test_trade_records_are_listed_newest_first_with_totals(service: ReviewService) -> None:
    first = service.save_trade(
        "alice",
        calculate_trade_duty(
            {
                "type": "import",
                "amount": 1000,
                "country_code": "CN",
                "category_id": "electronics",
                "product_name": "Laptop",
            }
        ),
        country="China",
        product_category="Electronics",
    )
    service.save_trade(
        "bob", calculate_trade_duty({"type": "export", "amount": 50, "country_rate": 1})
    )
    second = service.save_trade(
        "alice",
        calculate_trade_duty(
            {"type": "export", "amount": 2000, "country_code": "IN", "category_id": "garments"}
        ),
    )

    records = service.list_trades("alice")

    assert [record.id for record in records] == [second.id, first.id]
    assert first.calculated_tax == 150
    assert first.country == "China"
    assert first.product_name == "Laptop"
    assert first.calculation_data["rate"] == 15
    assert first.calculation_data["country_code"] == "CN"
    assert review_module.trade_totals(records) == {
        "amount": 3000,
        "calculated_tax": 250,
        "final_total": 3250,
    }
    assert len(service.list_trades()) == 3
    assert len(service.list_trades(limit=1)) == 1


def test_trade_totals_of_empty_history_are_zero() -> None:
    assert review_module.trade_totals([]) == {
        "amount": 0,
        "calculated_tax": 0,
        "final_total": 0,
    }


def test_draft_must_be_submitted_by_owner(service: ReviewService) -> None:
    draft = service.submit_request("alice", calculate_tax(500_000, 0), draft=True)
    assert draft.status is RequestStatus.DRAFT
    assert service.pending_requests() == []

    with pytest.raises(PermissionError):
        service.submit_draft(draft.id, "mallory")

    submitted = service.submit_draft(draft.id, "alice")

    assert submitted.status is RequestStatus.SUBMITTED
    assert [record.id for record in service.pending_requests()] == [draft.id]


def test_approval_recomputes_and_records_officer_calculation(service: ReviewService) -> None:
    pending = service.submit_request("alice", calculate_tax(2_000_000, 0))

    approved, calculation = service.approve(pending.id, "officer-1", note="Checked")

    assert approved.status is RequestStatus.APPROVED
    assert approved.officer_id == "officer-1"
    assert approved.officer_note == "Checked"
    assert calculation.user_id == "alice"
    assert calculation.officer_id == "officer-1"
    assert calculation.calculated_tax == 287_500
    assert calculation.calculation_data["source_request_id"] == pending.id
    assert calculation.calculation_data["created_by"] == "officer"

    activity = service.activity_log("officer-1")
    assert [entry.activity_type for entry in activity] == [ActivityType.REQUEST_APPROVED]
    assert activity[0].target_user_id == "alice"


def test_approval_ignores_tampered_figures(
    service: ReviewService, caplog: pytest.LogCaptureFixture
) -> None:
    custom = calculate_tax(500_000, 0, slabs=[{"from": 0, "to": None, "rate": 0.5}])
    pending = service.submit_request("alice", custom)
    assert pending.calculated_tax == 250_000

    with caplog.at_level(logging.WARNING):
        _, calculation = service.approve(pending.id, "officer-1")

    assert calculation.calculated_tax == 10_000
    assert "differs from recomputed" in caplog.text


def test_rejection_and_repeat_decisions(service: ReviewService) -> None:
    pending = service.submit_request("alice", calculate_tax(500_000, 0))

    rejected = service.reject(pending.id, "officer-2", note="Missing documents")

    assert rejected.status is RequestStatus.REJECTED
    with pytest.raises(InvalidTransitionError):
        service.approve(pending.id, "officer-1")
    with pytest.raises(InvalidTransitionError):
        service.reject(pending.id, "officer-1")
    assert service.activity_log()[0].activity_type is ActivityType.REQUEST_REJECTED


def test_draft_cannot_be_approved(service: ReviewService) -> None:
    draft = service.submit_request("alice", calculate_tax(1, 0), draft=True)

    with pytest.raises(InvalidTransitionError):
        service.approve(draft.id, "officer-1")


def test_officer_calculation_is_audited(service: ReviewService) -> None:
    record = service.officer_calculation("officer-1", "bob", 750_000, 0, "2025-2026")

    assert record.fiscal_year == "2025-2026"
    assert record.calculated_tax == 35_000
    entries = service.activity_log()
    assert entries[0].activity_type is ActivityType.OFFICER_CALC_CREATE
    assert entries[0].metadata["calculation_id"] == record.id
    assert service.activity_log("someone-else") == []


def test_list_requests_filters_by_citizen_and_status(service: ReviewService) -> None:
    alice = service.submit_request("alice", calculate_tax(1, 0))
    service.submit_request("bob", calculate_tax(1, 0), draft=True)

    assert [r.id for r in service.list_requests(citizen_id="alice")] == [alice.id]
    assert len(service.list_requests(status=RequestStatus.DRAFT)) == 1
    assert len(service.list_requests()) == 2


def test_sqlite_repository_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "review.db"
    writer = ReviewService(SQLiteReviewRepository(path))
    record = writer.submit_request("alice", calculate_tax(500_000, 0))

    reader = ReviewService(SQLiteReviewRepository(path))
    restored = reader.get_request(record.id)

    assert restored.calculated_tax == 10_000
    assert restored.calculation_data["breakdown"][0]["to"] == 350_000
    assert restored.created_at == record.created_at


def test_concurrent_decisions_allow_a_single_winner(tmp_path: Path) -> None:
    service = ReviewService(SQLiteReviewRepository(tmp_path / "review.db"))
    pending = service.submit_request("alice", calculate_tax(500_000, 0))

    def decide(officer: str) -> str:
        try:
            service.reject(pending.id, officer)
        except InvalidTransitionError:
            return "conflict"
        return "rejected"

    with ThreadPoolExecutor(max_workers=4) as executor:
        outcomes = list(executor.map(decide, [f"officer-{i}" for i in range(4)]))

    assert outcomes.count("rejected") == 1
    assert outcomes.count("conflict") == 3


def test_in_memory_history_is_capped() -> None:
    service = ReviewService(InMemoryReviewRepository(max_history=2))
    first = service.save_calculation("alice", calculate_tax(1, 0))
    service.save_calculation("alice", calculate_tax(2, 0))
    service.save_calculation("alice", calculate_tax(3, 0))

    with pytest.raises(RecordNotFoundError):
        service.get_calculation(first.id)


def test_build_review_service_honours_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("BDTAX_REQUEST_DB", str(tmp_path / "env.db"))
    assert isinstance(build_review_service().repository, SQLiteReviewRepository)

    monkeypatch.delenv("BDTAX_REQUEST_DB")
    monkeypatch.setenv("BDTAX_HISTORY_CAPACITY", "not-a-number")
    assert isinstance(build_review_service().repository, InMemoryReviewRepository)


def test_invalid_capacity_is_ignored_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger=review_module.__name__):
        assert review_module._parse_positive_int("-3", env="BDTAX_HISTORY_CAPACITY") is None

    assert "BDTAX_HISTORY_CAPACITY" in caplog.text
