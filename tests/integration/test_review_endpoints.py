"""Integration tests for history, review requests and the audit log."""

from __future__ import annotations

from http import HTTPStatus

from flask.testing import FlaskClient

CITIZEN = {"X-User-Id": "alice", "X-User-Role": "citizen"}
OTHER_CITIZEN = {"X-User-Id": "bob"}
OFFICER = {"X-User-Id": "officer-1", "X-User-Role": "officer"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "Admin"}


def _create_request(client: FlaskClient, **payload) -> dict:
    body = {"total_income": 2_000_000, **payload}
    response = client.post("/api/v1/requests", json=body, headers=CITIZEN)
    assert response.status_code == HTTPStatus.CREATED
    return response.get_json()


def test_identity_header_is_required(client: FlaskClient) -> None:
    response = client.get("/api/v1/history")

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.get_json()["error"] == "unauthorized"


def test_unknown_role_is_forbidden(client: FlaskClient) -> None:
    response = client.get("/api/v1/history", headers={"X-User-Id": "x", "X-User-Role": "root"})

    assert response.status_code == HTTPStatus.FORBIDDEN


def test_history_round_trip(client: FlaskClient) -> None:
    created = client.post(
        "/api/v1/history", json={"total_income": 500_000}, headers=CITIZEN
    )
    assert created.status_code == HTTPStatus.CREATED
    record = created.get_json()
    assert record["calculated_tax"] == 10_000
    assert record["calculation_data"]["created_by"] == "citizen"

    mine = client.get("/api/v1/history", headers=CITIZEN).get_json()["calculations"]
    theirs = client.get("/api/v1/history", headers=OTHER_CITIZEN).get_json()["calculations"]
    everyone = client.get("/api/v1/history", headers=OFFICER).get_json()["calculations"]

    assert [item["id"] for item in mine] == [record["id"]]
    assert theirs == []
    assert len(everyone) == 1


def test_history_exports(client: FlaskClient) -> None:
    record = client.post(
        "/api/v1/history", json={"total_income": 500_000}, headers=CITIZEN
    ).get_json()

    csv_response = client.get(f"/api/v1/history/{record['id']}/csv", headers=CITIZEN)
    assert csv_response.status_code == HTTPStatus.OK
    assert csv_response.mimetype == "text/csv"
    assert "Calculated tax," in csv_response.get_data(as_text=True)

    pdf_response = client.get(f"/api/v1/history/{record['id']}/pdf", headers=OFFICER)
    assert pdf_response.status_code == HTTPStatus.OK
    assert pdf_response.data.startswith(b"%PDF")

    foreign = client.get(f"/api/v1/history/{record['id']}/csv", headers=OTHER_CITIZEN)
    assert foreign.status_code == HTTPStatus.FORBIDDEN

    missing = client.get("/api/v1/history/nope/pdf", headers=CITIZEN)
    assert missing.status_code == HTTPStatus.NOT_FOUND


def test_history_rejects_free_text_fiscal_year(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/history",
        json={"total_income": 500_000, "fiscal_year": "২০২৬-২০২৭"},
        headers=CITIZEN,
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert "fiscal_year" in response.get_json()["message"]
    assert client.get("/api/v1/history", headers=CITIZEN).get_json()["calculations"] == []


def test_citizen_cannot_record_for_someone_else(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/history",
        json={"total_income": 1, "citizen_id": "bob"},
        headers=CITIZEN,
    )

    assert response.status_code == HTTPStatus.FORBIDDEN


def test_officer_calculation_for_citizen_is_audited(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/history",
        json={"total_income": 750_000, "citizen_id": "bob", "fiscal_year": "2025-2026"},
        headers=OFFICER,
    )

    assert response.status_code == HTTPStatus.CREATED
    assert response.get_json()["user_id"] == "bob"

    activity = client.get("/api/v1/activity", headers=OFFICER).get_json()["activity"]
    assert [entry["activity_type"] for entry in activity] == ["OFFICER_CALC_CREATE"]


def test_review_approval_flow(client: FlaskClient) -> None:
    pending = _create_request(client)
    assert pending["status"] == "submitted"

    queue = client.get("/api/v1/requests?status=submitted", headers=OFFICER).get_json()
    assert [item["id"] for item in queue["requests"]] == [pending["id"]]

    forbidden = client.post(f"/api/v1/requests/{pending['id']}/approve", headers=CITIZEN)
    assert forbidden.status_code == HTTPStatus.FORBIDDEN

    approved = client.post(
        f"/api/v1/requests/{pending['id']}/approve",
        json={"note": "Looks right"},
        headers=OFFICER,
    )
    assert approved.status_code == HTTPStatus.OK
    body = approved.get_json()
    assert body["request"]["status"] == "approved"
    assert body["request"]["officer_note"] == "Looks right"
    assert body["calculation"]["calculated_tax"] == 287_500

    again = client.post(f"/api/v1/requests/{pending['id']}/reject", headers=OFFICER)
    assert again.status_code == HTTPStatus.CONFLICT
    assert again.get_json()["error"] == "conflict"

    history = client.get("/api/v1/history", headers=CITIZEN).get_json()["calculations"]
    assert history[0]["officer_id"] == "officer-1"


def test_draft_submission_and_rejection(client: FlaskClient) -> None:
    draft = _create_request(client, draft=True)
    assert draft["status"] == "draft"

    not_owner = client.post(f"/api/v1/requests/{draft['id']}/submit", headers=OTHER_CITIZEN)
    assert not_owner.status_code == HTTPStatus.FORBIDDEN

    submitted = client.post(f"/api/v1/requests/{draft['id']}/submit", headers=CITIZEN)
    assert submitted.get_json()["status"] == "submitted"

    rejected = client.post(f"/api/v1/requests/{draft['id']}/reject", headers=ADMIN)
    assert rejected.status_code == HTTPStatus.OK
    assert rejected.get_json()["request"]["status"] == "rejected"

    own = client.get("/api/v1/requests", headers=CITIZEN).get_json()["requests"]
    assert [item["status"] for item in own] == ["rejected"]
    assert client.get("/api/v1/requests", headers=OTHER_CITIZEN).get_json()["requests"] == []


def test_unknown_request_returns_not_found(client: FlaskClient) -> None:
    response = client.post("/api/v1/requests/missing/approve", headers=OFFICER)

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert "missing" in response.get_json()["message"]


def test_decision_note_is_limited(client: FlaskClient) -> None:
    pending = _create_request(client)

    response = client.post(
        f"/api/v1/requests/{pending['id']}/reject",
        json={"note": "x" * 501},
        headers=OFFICER,
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_invalid_status_filter(client: FlaskClient) -> None:
    response = client.get("/api/v1/requests?status=lost", headers=OFFICER)

    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_activity_log_scoping(client: FlaskClient) -> None:
    first = _create_request(client)
    second = _create_request(client)
    client.post(f"/api/v1/requests/{first['id']}/approve", headers=OFFICER)
    client.post(f"/api/v1/requests/{second['id']}/reject", headers=ADMIN)

    officer_view = client.get("/api/v1/activity", headers=OFFICER).get_json()["activity"]
    admin_view = client.get("/api/v1/activity", headers=ADMIN).get_json()["activity"]
    filtered = client.get(
        "/api/v1/activity?officer_id=officer-1", headers=ADMIN
    ).get_json()["activity"]

    assert [entry["activity_type"] for entry in officer_view] == ["REQUEST_APPROVED"]
    assert [entry["activity_type"] for entry in admin_view] == [
        "REQUEST_REJECTED",
        "REQUEST_APPROVED",
    ]
    assert len(filtered) == 1
    assert client.get("/api/v1/activity", headers=CITIZEN).status_code == HTTPStatus.FORBIDDEN


def test_trade_history_round_trip(client: FlaskClient) -> None:
    first = client.post(
        "/api/v1/trade-history",
        json={
            "type": "import",
            "amount": 1000,
            "country_code": "CN",
            "category_id": "electronics",
            "product_name": "Laptop",
        },
        headers=CITIZEN,
    )
    assert first.status_code == HTTPStatus.CREATED
    saved = first.get_json()
    assert saved["country"] == "China"
    assert saved["product_category"] == "Electronics"
    assert saved["calculated_tax"] == 150

    second = client.post(
        "/api/v1/trade-history",
        json={
            "type": "export",
            "amount": 10,
            "currency": "USD",
            "country_code": "IN",
            "category_id": "garments",
            "product_name": "Shirts",
        },
        headers=CITIZEN,
    ).get_json()
    assert second["amount"] == 1200
    assert second["calculation_data"]["input_currency"] == "USD"

    body = client.get("/api/v1/trade-history", headers=CITIZEN).get_json()
    assert [record["id"] for record in body["records"]] == [second["id"], saved["id"]]
    assert body["totals"] == {"amount": 2200, "calculated_tax": 210, "final_total": 2410}

    theirs = client.get("/api/v1/trade-history", headers=OTHER_CITIZEN).get_json()
    assert theirs["records"] == []
    scoped = client.get(
        "/api/v1/trade-history", query_string={"user_id": "alice"}, headers=OFFICER
    ).get_json()
    assert len(scoped["records"]) == 2


def test_trade_history_requires_product_and_positive_amount(client: FlaskClient) -> None:
    missing_product = client.post(
        "/api/v1/trade-history", json={"type": "import", "amount": 100}, headers=CITIZEN
    )
    zero_amount = client.post(
        "/api/v1/trade-history",
        json={"type": "import", "amount": 0, "product_name": "Tea"},
        headers=CITIZEN,
    )
    anonymous = client.get("/api/v1/trade-history")

    assert missing_product.status_code == HTTPStatus.BAD_REQUEST
    assert "product_name" in missing_product.get_json()["message"]
    assert zero_amount.status_code == HTTPStatus.BAD_REQUEST
    assert "greater than zero" in zero_amount.get_json()["message"]
    assert anonymous.status_code == HTTPStatus.UNAUTHORIZED
