"""Storage for calculation history, trade records, review requests and audit entries."""

from __future__ import annotations

import json
import os
import sqlite3
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Mapping, Protocol, Sequence


class RequestStatus(str, Enum):
    """Lifecycle states of an officer review request."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActivityType(str, Enum):
    """Officer actions recorded in the audit log."""

    OFFICER_CALC_CREATE = "OFFICER_CALC_CREATE"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"


class RecordNotFoundError(KeyError):
    """Raised when a calculation or request identifier is unknown."""


class InvalidTransitionError(ValueError):
    """Raised when a request cannot move to the requested status."""


@dataclass(frozen=True)
class CalculationRecord:
    """Saved calculation history entry with its breakdown payload."""

    id: str
    user_id: str
    fiscal_year: str
    total_income: float
    total_expense: float
    taxable_income: float
    calculated_tax: float
    calculation_data: Mapping[str, Any]
    created_at: datetime
    officer_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "officer_id": self.officer_id,
            "fiscal_year": self.fiscal_year,
            "total_income": self.total_income,
            "total_expense": self.total_expense,
            "taxable_income": self.taxable_income,
            "calculated_tax": self.calculated_tax,
            "calculation_data": dict(self.calculation_data),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class TaxRequestRecord:
    """Citizen submission awaiting (or having received) an officer decision."""

    id: str
    citizen_id: str
    fiscal_year: str
    total_income: float
    total_expense: float
    taxable_income: float
    calculated_tax: float
    calculation_data: Mapping[str, Any]
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    officer_id: str | None = None
    officer_note: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "citizen_id": self.citizen_id,
            "fiscal_year": self.fiscal_year,
            "total_income": self.total_income,
            "total_expense": self.total_expense,
            "taxable_income": self.taxable_income,
            "calculated_tax": self.calculated_tax,
            "calculation_data": dict(self.calculation_data),
            "status": self.status.value,
            "officer_id": self.officer_id,
            "officer_note": self.officer_note,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class TradeRecord:
    """Saved import/export duty calculation."""

    id: str
    user_id: str
    type: str
    country: str
    product_category: str
    product_name: str
    amount: float
    calculated_tax: float
    calculation_data: Mapping[str, Any]
    created_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "country": self.country,
            "product_category": self.product_category,
            "product_name": self.product_name,
            "amount": self.amount,
            "calculated_tax": self.calculated_tax,
            "calculation_data": dict(self.calculation_data),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ActivityLogEntry:
    """Audit trail entry describing an officer action."""

    id: str
    officer_id: str
    activity_type: ActivityType
    description: str
    created_at: datetime
    target_user_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "officer_id": self.officer_id,
            "activity_type": self.activity_type.value,
            "target_user_id": self.target_user_id,
            "description": self.description,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
        }


class ReviewRepository(Protocol):
    """Operations the review workflow needs from its storage backend."""

    def add_calculation(self, record: CalculationRecord) -> None: ...

    def get_calculation(self, record_id: str) -> CalculationRecord: ...

    def list_calculations(self, user_id: str | None = None) -> Sequence[CalculationRecord]: ...

    def add_trade(self, record: TradeRecord) -> None: ...

    def list_trades(
        self, user_id: str | None = None, *, limit: int | None = None
    ) -> Sequence[TradeRecord]: ...

    def add_request(self, record: TaxRequestRecord) -> None: ...

    def get_request(self, request_id: str) -> TaxRequestRecord: ...

    def transition_request(
        self,
        request_id: str,
        expected: RequestStatus,
        target: RequestStatus,
        *,
        updated_at: datetime,
        officer_id: str | None = None,
        officer_note: str | None = None,
    ) -> TaxRequestRecord: ...

    def list_requests(
        self,
        *,
        status: RequestStatus | None = None,
        citizen_id: str | None = None,
    ) -> Sequence[TaxRequestRecord]: ...

    def add_activity(self, entry: ActivityLogEntry) -> None: ...

    def list_activity(self, officer_id: str | None = None) -> Sequence[ActivityLogEntry]: ...


def _newest_first(records: Sequence[Any]) -> list[Any]:
    return sorted(records, key=lambda record: record.created_at, reverse=True)


class InMemoryReviewRepository:
    """Thread-safe in-memory storage; history is capped at ``max_history`` rows."""

    def __init__(self, *, max_history: int | None = 5000) -> None:
        if max_history is not None and max_history <= 0:
            raise ValueError("max_history must be positive when provided")

        self._max_history = max_history
        self._calculations: "OrderedDict[str, CalculationRecord]" = OrderedDict()
        self._trades: "OrderedDict[str, TradeRecord]" = OrderedDict()
        self._requests: dict[str, TaxRequestRecord] = {}
        self._activity: list[ActivityLogEntry] = []
        self._lock = Lock()

    def add_calculation(self, record: CalculationRecord) -> None:
        with self._lock:
            self._calculations[record.id] = record
            if self._max_history is not None:
                while len(self._calculations) > self._max_history:
                    self._calculations.popitem(last=False)

    def get_calculation(self, record_id: str) -> CalculationRecord:
        with self._lock:
            record = self._calculations.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def list_calculations(self, user_id: str | None = None) -> list[CalculationRecord]:
        with self._lock:
            records = [
                record
                for record in self._calculations.values()
                if user_id is None or record.user_id == user_id
            ]
        return _newest_first(records)

    def add_trade(self, record: TradeRecord) -> None:
        with self._lock:
            self._trades[record.id] = record
            if self._max_history is not None:
                while len(self._trades) > self._max_history:
                    self._trades.popitem(last=False)

    def list_trades(
        self, user_id: str | None = None, *, limit: int | None = None
    ) -> list[TradeRecord]:
        with self._lock:
            records = [
                record
                for record in self._trades.values()
                if user_id is None or record.user_id == user_id
            ]
        ordered = _newest_first(records)
        return ordered if limit is None else ordered[:limit]

    def add_request(self, record: TaxRequestRecord) -> None:
        with self._lock:
            self._requests[record.id] = record

    def get_request(self, request_id: str) -> TaxRequestRecord:
        with self._lock:
            record = self._requests.get(request_id)
        if record is None:
            raise RecordNotFoundError(request_id)
        return record

    def transition_request(
        self,
        request_id: str,
        expected: RequestStatus,
        target: RequestStatus,
        *,
        updated_at: datetime,
        officer_id: str | None = None,
        officer_note: str | None = None,
    ) -> TaxRequestRecord:
        with self._lock:
            record = self._requests.get(request_id)
            if record is None:
                raise RecordNotFoundError(request_id)
            if record.status is not expected:
                raise InvalidTransitionError(
                    f"Request {request_id} is {record.status.value}, expected {expected.value}"
                )
            updated = replace(
                record,
                status=target,
                updated_at=updated_at,
                officer_id=officer_id if officer_id is not None else record.officer_id,
                officer_note=officer_note if officer_note is not None else record.officer_note,
            )
            self._requests[request_id] = updated
            return updated

    def list_requests(
        self,
        *,
        status: RequestStatus | None = None,
        citizen_id: str | None = None,
    ) -> list[TaxRequestRecord]:
        with self._lock:
            records = [
                record
                for record in self._requests.values()
                if (status is None or record.status is status)
                and (citizen_id is None or record.citizen_id == citizen_id)
            ]
        return _newest_first(records)

    def add_activity(self, entry: ActivityLogEntry) -> None:
        with self._lock:
            self._activity.append(entry)

    def list_activity(self, officer_id: str | None = None) -> list[ActivityLogEntry]:
        with self._lock:
            entries = [
                entry
                for entry in self._activity
                if officer_id is None or entry.officer_id == officer_id
            ]
        return _newest_first(entries)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteReviewRepository:
    """SQLite-backed repository mirroring :class:`InMemoryReviewRepository`."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = str(path)
        self._lock = Lock()
        self._initialise()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        return connection

    def _initialise(self) -> None:
        with self._connect() as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS tax_calculations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    officer_id TEXT,
                    fiscal_year TEXT NOT NULL,
                    total_income REAL NOT NULL,
                    total_expense REAL NOT NULL,
                    taxable_income REAL NOT NULL,
                    calculated_tax REAL NOT NULL,
                    calculation_data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS import_export_records (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    country TEXT NOT NULL,
                    product_category TEXT NOT NULL,
                    product_name TEXT NOT NULL,
                    amount REAL NOT NULL,
                    calculated_tax REAL NOT NULL,
                    calculation_data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS tax_requests (
                    id TEXT PRIMARY KEY,
                    citizen_id TEXT NOT NULL,
                    fiscal_year TEXT NOT NULL,
                    total_income REAL NOT NULL,
                    total_expense REAL NOT NULL,
                    taxable_income REAL NOT NULL,
                    calculated_tax REAL NOT NULL,
                    calculation_data TEXT NOT NULL,
                    status TEXT NOT NULL,
                    officer_id TEXT,
                    officer_note TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS officer_activity_logs (
                    id TEXT PRIMARY KEY,
                    officer_id TEXT NOT NULL,
                    activity_type TEXT NOT NULL,
                    target_user_id TEXT,
                    description TEXT NOT NULL,
                    metadata TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )

    @staticmethod
    def _decode_calculation(row: sqlite3.Row) -> CalculationRecord:
        return CalculationRecord(
            id=row["id"],
            user_id=row["user_id"],
            officer_id=row["officer_id"],
            fiscal_year=row["fiscal_year"],
            total_income=row["total_income"],
            total_expense=row["total_expense"],
            taxable_income=row["taxable_income"],
            calculated_tax=row["calculated_tax"],
            calculation_data=json.loads(row["calculation_data"]),
            created_at=_parse_timestamp(row["created_at"]),
        )

    @staticmethod
    def _decode_trade(row: sqlite3.Row) -> TradeRecord:
        return TradeRecord(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            country=row["country"],
            product_category=row["product_category"],
            product_name=row["product_name"],
            amount=row["amount"],
            calculated_tax=row["calculated_tax"],
            calculation_data=json.loads(row["calculation_data"]),
            created_at=_parse_timestamp(row["created_at"]),
        )

    @staticmethod
    def _decode_request(row: sqlite3.Row) -> TaxRequestRecord:
        return TaxRequestRecord(
            id=row["id"],
            citizen_id=row["citizen_id"],
            fiscal_year=row["fiscal_year"],
            total_income=row["total_income"],
            total_expense=row["total_expense"],
            taxable_income=row["taxable_income"],
            calculated_tax=row["calculated_tax"],
            calculation_data=json.loads(row["calculation_data"]),
            status=RequestStatus(row["status"]),
            officer_id=row["officer_id"],
            officer_note=row["officer_note"],
            created_at=_parse_timestamp(row["created_at"]),
            updated_at=_parse_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _decode_activity(row: sqlite3.Row) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=row["id"],
            officer_id=row["officer_id"],
            activity_type=ActivityType(row["activity_type"]),
            target_user_id=row["target_user_id"],
            description=row["description"],
            metadata=json.loads(row["metadata"]),
            created_at=_parse_timestamp(row["created_at"]),
        )

    def add_calculation(self, record: CalculationRecord) -> None:
        with self._lock, self._connect() as connection:
            connection.execute(
                "INSERT INTO tax_calculations (id, user_id, officer_id, fiscal_year,"
                " total_income, total_expense, taxable_income, calculated_tax,"
                " calculation_data, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user_id,
                    record.officer_id,
                    record.fiscal_year,
                    record.total_income,
                    record.total_expense,
                    record.taxable_income,
                    record.calculated_tax,
                    json.dumps(dict(record.calculation_data), ensure_ascii=False),
                    record.created_at.isoformat(),
                ),
            )

    def get_calculation(self, record_id: str) -> CalculationRecord:
        with self._lock, self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM tax_calculations WHERE id = ?", (record_id,)
            ).fetchone()
        if row is None:
            raise RecordNotFoundError(record_id)
        return self._decode_calculation(row)

    def list_calculations(self, user_id: str | None = None) -> list[CalculationRecord]:
        query = "SELECT * FROM tax_calculations"
        params: tuple[Any, ...] = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY created_at DESC"
        with self._lock, self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [self._decode_calculation(row) for row in rows]

    def add_trade(self, record: TradeRecord) -> None:
        with self._lock, self._connect() as connection:
            connection.execute(
                "INSERT INTO import_export_records (id, user_id, type, country,"
                " product_category, product_name, amount, calculated_tax,"
                " calculation_data, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user_id,
                    record.type,
                    record.country,
                    record.product_category,
                    record.product_name,
                    record.amount,
                    record.calculated_tax,
                    json.dumps(dict(record.calculation_data), ensure_ascii=False),
                    record.created_at.isoformat(),
                ),
            )

    def list_trades(
        self, user_id: str | None = None, *, limit: int | None = None
    ) -> list[TradeRecord]:
        query = "SELECT * FROM import_export_records"
        params: list[Any] = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._lock, self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [self._decode_trade(row) for row in rows]

    def add_request(self, record: TaxRequestRecord) -> None:
        with self._lock, self._connect() as connection:
            connection.execute(
                "INSERT INTO tax_requests (id, citizen_id, fiscal_year, total_income,"
                " total_expense, taxable_income, calculated_tax, calculation_data, status,"
                " officer_id, officer_note, created_at, updated_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.citizen_id,
                    record.fiscal_year,
                    record.total_income,
                    record.total_expense,
                    record.taxable_income,
                    record.calculated_tax,
                    json.dumps(dict(record.calculation_data), ensure_ascii=False),
                    record.status.value,
                    record.officer_id,
                    record.officer_note,
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )

    def get_request(self, request_id: str) -> TaxRequestRecord:
        with self._lock, self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM tax_requests WHERE id = ?", (request_id,)
            ).fetchone()
        if row is None:
            raise RecordNotFoundError(request_id)
        return self._decode_request(row)

    def transition_request(
        self,
        request_id: str,
        expected: RequestStatus,
        target: RequestStatus,
        *,
        updated_at: datetime,
        officer_id: str | None = None,
        officer_note: str | None = None,
    ) -> TaxRequestRecord:
        with self._lock, self._connect() as connection:
            cursor = connection.execute(
                "UPDATE tax_requests SET status = ?, updated_at = ?,"
                " officer_id = COALESCE(?, officer_id),"
                " officer_note = COALESCE(?, officer_note)"
                " WHERE id = ? AND status = ?",
                (
                    target.value,
                    updated_at.isoformat(),
                    officer_id,
                    officer_note,
                    request_id,
                    expected.value,
                ),
            )
            row = connection.execute(
                "SELECT * FROM tax_requests WHERE id = ?", (request_id,)
            ).fetchone()

        if row is None:
            raise RecordNotFoundError(request_id)
        record = self._decode_request(row)
        if cursor.rowcount == 0:
            raise InvalidTransitionError(
                f"Request {request_id} is {record.status.value}, expected {expected.value}"
            )
        return record

    def list_requests(
        self,
        *,
        status: RequestStatus | None = None,
        citizen_id: str | None = None,
    ) -> list[TaxRequestRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if citizen_id is not None:
            clauses.append("citizen_id = ?")
            params.append(citizen_id)

        query = "SELECT * FROM tax_requests"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC"

        with self._lock, self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [self._decode_request(row) for row in rows]

    def add_activity(self, entry: ActivityLogEntry) -> None:
        with self._lock, self._connect() as connection:
            connection.execute(
                "INSERT INTO officer_activity_logs (id, officer_id, activity_type,"
                " target_user_id, description, metadata, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.id,
                    entry.officer_id,
                    entry.activity_type.value,
                    entry.target_user_id,
                    entry.description,
                    json.dumps(dict(entry.metadata), ensure_ascii=False),
                    entry.created_at.isoformat(),
                ),
            )

    def list_activity(self, officer_id: str | None = None) -> list[ActivityLogEntry]:
        query = "SELECT * FROM officer_activity_logs"
        params: tuple[Any, ...] = ()
        if officer_id is not None:
            query += " WHERE officer_id = ?"
            params = (officer_id,)
        query += " ORDER BY created_at DESC"
        with self._lock, self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [self._decode_activity(row) for row in rows]


__all__ = [
    "ActivityLogEntry",
    "ActivityType",
    "CalculationRecord",
    "InMemoryReviewRepository",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "RequestStatus",
    "ReviewRepository",
    "SQLiteReviewRepository",
    "TaxRequestRecord",
    "TradeRecord",
]
