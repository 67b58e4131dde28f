"""Integration tests for the tax and trade calculation endpoints."""

from __future__ import annotations

import json
from http import HTTPStatus
from pathlib import Path
from typing import Dict, Iterable

import pytest
from flask.testing import FlaskClient

DATA_PATH = Path(__file__).resolve().parents[1] / "data" / "regression_scenarios.json"


def _load_scenarios() -> Iterable[Dict[str, object]]:
    with DATA_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@pytest.mark.parametrize("scenario", _load_scenarios(), ids=lambda item: item["name"])
def test_tax_endpoint_matches_regression_scenarios(
    client: FlaskClient, scenario: Dict[str, object]
) -> None:
    """Each regression scenario should remain stable over time."""

    response = client.post("/api/v1/calculations/tax", json=scenario["payload"])
    assert response.status_code == HTTPStatus.OK

    body = response.get_json()
    expected = scenario["expectations"]

    for key, value in expected["result"].items():
        assert body["result"][key] == pytest.approx(value)

    taxes = [line["tax_for_slab"] for line in body["breakdown"]]
    assert taxes == pytest.approx(expected["breakdown_taxes"])


def test_tax_endpoint_uses_accept_language_header(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations/tax",
        json={"total_income": 500_000},
        headers={"Accept-Language": "bn-BD,bn;q=0.9"},
    )

    assert response.status_code == HTTPStatus.OK
    body = response.get_json()
    assert body["meta"]["locale"] == "bn"
    assert body["summary"]["labels"]["total_income"] == "মোট আয়"


def test_tax_endpoint_rejects_malformed_json(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations/tax", data="{", content_type="application/json"
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"] == "bad_request"


def test_tax_endpoint_rejects_non_numeric_income(client: FlaskClient) -> None:
    response = client.post("/api/v1/calculations/tax", json={"total_income": "lots"})

    assert response.status_code == HTTPStatus.BAD_REQUEST
    body = response.get_json()
    assert body["error"] == "validation_error"
    assert "total_income" in body["message"]


def test_tax_endpoint_rejects_invalid_slabs(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations/tax",
        json={"total_income": 1, "slabs": [{"from": 100, "to": 50, "rate": 0.1}]},
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert "Slab 0" in response.get_json()["message"]


def test_tax_endpoint_clamps_negative_income(client: FlaskClient) -> None:
    response = client.post("/api/v1/calculations/tax", json={"total_income": -500})

    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["result"]["calculated_tax"] == 0


def test_tax_endpoint_accepts_incomes_near_the_float_limit(client: FlaskClient) -> None:
    response = client.post("/api/v1/calculations/tax", json={"total_income": 1e307})

    assert response.status_code == HTTPStatus.OK
    body = response.get_json()
    assert body["result"]["taxable_income"] == pytest.approx(1e307)
    assert body["summary"]["effective_tax_rate"] == pytest.approx(0.25)


def test_trade_endpoint_calculates_duty(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations/trade",
        json={"type": "import", "amount": 1000, "country_rate": 5, "category_rate": 2.5},
    )

    assert response.status_code == HTTPStatus.OK
    body = response.get_json()
    assert body["result"] == {"rate": 7.5, "calculated_tax": 75.0}
    assert body["input"]["input_currency"] == "BDT"


def test_trade_endpoint_clamps_negative_amount(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations/trade",
        json={"type": "export", "amount": -50, "country_rate": 10, "category_rate": 10},
    )

    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["result"]["calculated_tax"] == 0


def test_trade_endpoint_rejects_unknown_category(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations/trade",
        json={"type": "import", "amount": 100, "category_id": "spaceships"},
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert "spaceships" in response.get_json()["message"]
