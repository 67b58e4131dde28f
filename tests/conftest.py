"""Test configuration utilities and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from bdtax.backend.app import create_app  # noqa: E402
from bdtax.backend.app.services.review_service import ReviewService  # noqa: E402
from bdtax.backend.app.services.review_store import InMemoryReviewRepository  # noqa: E402


class FakeClock:
    """Clock that advances one second per call so ordering is deterministic."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 7, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def sequential_ids(prefix: str = "rec"):
    counter = count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture()
def review_service() -> ReviewService:
    """Workflow service backed by memory with a deterministic clock and ids."""

    return ReviewService(
        InMemoryReviewRepository(),
        clock=FakeClock(),
        id_factory=sequential_ids(),
    )


@pytest.fixture()
def app(review_service: ReviewService) -> Flask:
    """Return a configured Flask application for integration tests."""

    application = create_app(review_service=review_service)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()
