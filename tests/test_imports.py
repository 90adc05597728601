from api.app import app
from backend.factory import build_finance_service
from shared.models import TransactionFilters


def test_imports_succeed() -> None:
    paths = {route.path for route in app.routes}

    assert "/api/transactions/stats/summary" in paths
    assert "/api/categories/custom/{category_id}" in paths
    assert build_finance_service().category_validator is not None
    assert TransactionFilters(limit=10).limit == 10
