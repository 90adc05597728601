"""Tests for transaction, statistics and category endpoints exposed by api.app."""

from __future__ import annotations

import importlib

import pytest
from fastapi.testclient import TestClient

import api.app as api_app
from backend.auth.supabase_auth import UnauthorizedError
from backend.errors import StoreError
from tests.fakes import OTHER_USER_ID, USER_ID, auth_user_payload, build_finance_service


client = TestClient(api_app.app)
COFFEE_ID = "33333333-3333-3333-3333-333333333333"
FOREIGN_ID = "55555555-5555-5555-5555-555555555555"


def _auth_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-token"}


@pytest.fixture
def service(monkeypatch):
    finance_service = build_finance_service()
    monkeypatch.setattr(api_app, "get_user_from_bearer_token", lambda _token: auth_user_payload(USER_ID))
    monkeypatch.setattr(api_app, "get_finance_service", lambda: finance_service)
    return finance_service


def test_health_is_public() -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["message"] == "Server is running"
    assert "timestamp" in payload


def test_missing_authorization_header_returns_401(service) -> None:
    response = client.get("/api/transactions")

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing Authorization header"


def test_invalid_token_returns_401(service, monkeypatch) -> None:
    def _reject(_token: str):
        raise UnauthorizedError("Unauthorized")

    monkeypatch.setattr(api_app, "get_user_from_bearer_token", _reject)

    response = client.get("/api/categories", headers=_auth_headers())

    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


def test_list_transactions_returns_envelope_with_pagination(service) -> None:
    response = client.get(
        "/api/transactions",
        params={"category": "", "start_date": "2025-01-01", "end_date": "2025-01-31", "limit": "2"},
        headers=_auth_headers(),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert [row["title"] for row in payload["data"]] == ["Coffee", "Supermarket"]
    assert payload["data"][0]["amount"] == 12.3
    assert payload["data"][0]["date"] == "2025-01-11"
    assert payload["pagination"] == {"limit": 2, "offset": 0, "total": 2}


def test_list_transactions_maps_invalid_filter_to_400(service) -> None:
    response = client.get("/api/transactions", params={"transaction_type": "transfer"}, headers=_auth_headers())

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["detail"].startswith("transaction_type:")
    assert payload["details"]["validation_errors"][0]["loc"] == ["transaction_type"]


def test_store_failure_returns_500_with_store_status(service) -> None:
    class _FailingRepository:
        def list_transaction_rows(self, *_args, **_kwargs):
            raise StoreError("permission denied for table transactions", status_code=403)

    service.transactions_repository = _FailingRepository()

    response = client.get("/api/transactions/stats/summary", headers=_auth_headers())

    assert response.status_code == 500
    assert response.json() == {
        "detail": "permission denied for table transactions",
        "code": "BACKEND_ERROR",
        "details": {"status_code": 403},
    }


def test_get_transaction_of_another_user_returns_404(service) -> None:
    response = client.get(f"/api/transactions/{FOREIGN_ID}", headers=_auth_headers())

    assert response.status_code == 404
    assert response.json()["detail"] == "Transaction not found"


def test_malformed_transaction_id_returns_400(service) -> None:
    response = client.get("/api/transactions/not-a-uuid", headers=_auth_headers())

    assert response.status_code == 400


def test_create_transaction_returns_201(service) -> None:
    response = client.post(
        "/api/transactions",
        json={"title": "Lunch", "amount": 9.5, "category": "Food", "date": "2025-03-02"},
        headers=_auth_headers(),
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Transaction created successfully"
    assert payload["data"]["transaction_type"] == "expense"
    assert payload["data"]["user_id"] == str(USER_ID)


def test_create_transaction_with_unknown_category_returns_400(service) -> None:
    response = client.post(
        "/api/transactions",
        json={"title": "Toy", "amount": 5, "category": "Pets"},
        headers=_auth_headers(),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid category. Use existing category or create a custom one first."


def test_create_transaction_without_required_fields_returns_400(service) -> None:
    response = client.post("/api/transactions", json={"title": "Toy"}, headers=_auth_headers())

    assert response.status_code == 400
    assert response.json()["detail"] == "Title, amount, and category are required"


def test_update_and_delete_transaction(service) -> None:
    update = client.put(
        f"/api/transactions/{COFFEE_ID}",
        json={"amount": 4.1},
        headers=_auth_headers(),
    )
    assert update.status_code == 200
    assert update.json()["data"]["amount"] == 4.1
    assert update.json()["message"] == "Transaction updated successfully"

    delete = client.delete(f"/api/transactions/{COFFEE_ID}", headers=_auth_headers())
    assert delete.status_code == 200
    assert delete.json() == {"success": True, "message": "Transaction deleted successfully"}

    again = client.delete(f"/api/transactions/{COFFEE_ID}", headers=_auth_headers())
    assert again.status_code == 404


def test_summary_route_is_not_captured_by_transaction_id(service) -> None:
    response = client.get(
        "/api/transactions/stats/summary",
        params={"start_date": "2025-01-01", "end_date": "2025-01-31"},
        headers=_auth_headers(),
    )

    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_income": 3000.0,
        "total_expenses": 66.5,
        "net_balance": 2933.5,
        "transaction_count": 3,
    }


def test_category_stats_route(service) -> None:
    response = client.get(
        "/api/transactions/stats/categories",
        params={"transaction_type": "income"},
        headers=_auth_headers(),
    )

    assert response.status_code == 200
    assert response.json()["data"] == [
        {"category": "Salary", "total_amount": 3000.0, "transaction_count": 1, "transaction_type": "income"}
    ]


def test_categories_list_marks_scope(service) -> None:
    created = client.post("/api/categories/custom", json={"name": "Pets"}, headers=_auth_headers())
    assert created.status_code == 201
    assert created.json()["data"]["icon"] == "📝"
    assert created.json()["data"]["color"] == "#85C1E9"

    response = client.get("/api/categories", headers=_auth_headers())

    assert response.status_code == 200
    scopes = {row["name"]: row["scope"] for row in response.json()["data"]}
    assert scopes["Food"] == "default"
    assert scopes["Pets"] == "custom"

    defaults = client.get("/api/categories/default", headers=_auth_headers()).json()["data"]
    custom = client.get("/api/categories/custom", headers=_auth_headers()).json()["data"]
    assert "Pets" not in {row["name"] for row in defaults}
    assert [row["name"] for row in custom] == ["Pets"]


def test_duplicate_custom_category_returns_400(service) -> None:
    response = client.post("/api/categories/custom", json={"name": "Groceries"}, headers=_auth_headers())

    assert response.status_code == 400
    assert response.json()["detail"] == "Category with this name already exists"


def test_update_and_delete_custom_category(service) -> None:
    created = client.post("/api/categories/custom", json={"name": "Pets"}, headers=_auth_headers())
    category_id = created.json()["data"]["id"]

    renamed = client.put(f"/api/categories/custom/{category_id}", json={"name": "Animals"}, headers=_auth_headers())
    assert renamed.status_code == 200
    assert renamed.json()["data"]["name"] == "Animals"

    deleted = client.delete(f"/api/categories/custom/{category_id}", headers=_auth_headers())
    assert deleted.status_code == 200
    assert deleted.json()["message"] == "Custom category deleted successfully"


def test_custom_category_of_another_user_cannot_be_deleted(service) -> None:
    category = service.create_custom_category(OTHER_USER_ID, {"name": "Garden"})

    response = client.delete(f"/api/categories/custom/{category.id}", headers=_auth_headers())

    assert response.status_code == 404
    assert response.json()["detail"] == "Category not found"


def test_options_returns_cors_headers_for_configured_origin(monkeypatch) -> None:
    ui_origin = "https://finance.example.com"
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
    monkeypatch.setenv("UI_ORIGIN", ui_origin)

    reloaded = importlib.reload(api_app)
    cors_client = TestClient(reloaded.app)

    response = cors_client.options(
        "/api/transactions",
        headers={
            "Origin": ui_origin,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization,content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == ui_origin
