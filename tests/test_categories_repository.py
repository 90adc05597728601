"""Unit tests for categories repositories (in-memory and Supabase)."""

from __future__ import annotations

from uuid import UUID

import pytest

from backend.errors import NotFoundError, StoreError
from backend.repositories.categories_repository import (
    DEFAULT_CATEGORY_SEED,
    InMemoryCategoriesRepository,
    SupabaseCategoriesRepository,
)
from shared.models import CategoryCreateRequest, CategoryScope, CategoryUpdateRequest
from tests.fakes import OTHER_USER_ID, USER_ID


CATEGORY_ID = "dddddddd-dddd-dddd-dddd-dddddddddddd"


class _ClientStub:
    def __init__(self, rows: list[dict[str, object]] | None = None) -> None:
        self.rows = rows if rows is not None else []
        self.calls: list[dict[str, object]] = []

    def get_rows(self, *, table, query, with_count):
        self.calls.append({"method": "GET", "table": table, "query": query})
        return self.rows, None

    def post_rows(self, *, table, payload, query=None, prefer="return=representation"):
        self.calls.append({"method": "POST", "table": table, "query": query, "payload": payload})
        return self.rows

    def patch_rows(self, *, table, query, payload):
        self.calls.append({"method": "PATCH", "table": table, "query": query, "payload": payload})
        return self.rows

    def delete_rows(self, *, table, query):
        self.calls.append({"method": "DELETE", "table": table, "query": query})
        return self.rows


def _custom_row(name: str = "Pets") -> dict[str, object]:
    return {
        "id": CATEGORY_ID,
        "user_id": str(USER_ID),
        "name": name,
        "icon": "🐶",
        "color": "#123456",
        "created_at": "2025-01-10T10:00:00+00:00",
    }


def test_in_memory_defaults_are_seeded_and_sorted() -> None:
    repository = InMemoryCategoriesRepository()

    names = [category.name for category in repository.list_default_categories()]

    assert names == sorted(name for name, _, _ in DEFAULT_CATEGORY_SEED)
    assert all(category.scope == CategoryScope.DEFAULT for category in repository.list_default_categories())


def test_in_memory_create_applies_icon_and_color_defaults() -> None:
    repository = InMemoryCategoriesRepository()

    created = repository.create_user_category(USER_ID, CategoryCreateRequest(name="  Pets  "))

    assert created.name == "Pets"
    assert created.icon == "📝"
    assert created.color == "#85C1E9"
    assert created.scope == CategoryScope.CUSTOM
    assert repository.list_user_categories(USER_ID) == [created]
    assert repository.list_user_categories(OTHER_USER_ID) == []


def test_in_memory_update_and_delete_are_owner_scoped() -> None:
    repository = InMemoryCategoriesRepository()
    created = repository.create_user_category(USER_ID, CategoryCreateRequest(name="Pets"))

    with pytest.raises(NotFoundError):
        repository.update_user_category(OTHER_USER_ID, created.id, CategoryUpdateRequest(name="Mine now"))
    with pytest.raises(NotFoundError):
        repository.delete_user_category(OTHER_USER_ID, created.id)

    updated = repository.update_user_category(USER_ID, created.id, CategoryUpdateRequest(color="#000000"))
    assert updated.name == "Pets"
    assert updated.color == "#000000"

    repository.delete_user_category(USER_ID, created.id)
    assert repository.list_user_categories(USER_ID) == []


def test_supabase_find_default_category_queries_by_exact_name() -> None:
    client = _ClientStub(rows=[{"id": CATEGORY_ID, "name": "Groceries", "icon": "🛒", "color": "#58D68D"}])
    repository = SupabaseCategoriesRepository(client=client)

    category = repository.find_default_category("Groceries")

    assert category is not None
    assert category.user_id is None
    call = client.calls[0]
    assert call["table"] == "categories"
    assert call["query"]["name"] == "eq.Groceries"


def test_supabase_find_user_category_returns_none_when_missing() -> None:
    client = _ClientStub(rows=[])
    repository = SupabaseCategoriesRepository(client=client)

    assert repository.find_user_category(USER_ID, "Pets") is None
    query = client.calls[0]["query"]
    assert client.calls[0]["table"] == "user_categories"
    assert query["user_id"] == f"eq.{USER_ID}"
    assert query["name"] == "eq.Pets"


def test_supabase_create_user_category_posts_owner_and_fields() -> None:
    client = _ClientStub(rows=[_custom_row()])
    repository = SupabaseCategoriesRepository(client=client)

    created = repository.create_user_category(
        USER_ID,
        CategoryCreateRequest(name="Pets", icon="🐶", color="#123456"),
    )

    assert created.id == UUID(CATEGORY_ID)
    assert client.calls[0]["payload"] == {
        "user_id": str(USER_ID),
        "name": "Pets",
        "icon": "🐶",
        "color": "#123456",
    }


def test_supabase_create_raises_store_error_without_representation() -> None:
    repository = SupabaseCategoriesRepository(client=_ClientStub(rows=[]))

    with pytest.raises(StoreError):
        repository.create_user_category(USER_ID, CategoryCreateRequest(name="Pets"))


def test_supabase_update_sends_only_provided_fields() -> None:
    client = _ClientStub(rows=[_custom_row(name="Animals")])
    repository = SupabaseCategoriesRepository(client=client)

    updated = repository.update_user_category(USER_ID, UUID(CATEGORY_ID), CategoryUpdateRequest(name="Animals"))

    assert updated.name == "Animals"
    call = client.calls[0]
    assert call["method"] == "PATCH"
    assert call["payload"] == {"name": "Animals"}
    assert call["query"]["user_id"] == f"eq.{USER_ID}"


def test_supabase_update_without_fields_reads_current_row() -> None:
    client = _ClientStub(rows=[_custom_row()])
    repository = SupabaseCategoriesRepository(client=client)

    category = repository.update_user_category(USER_ID, UUID(CATEGORY_ID), CategoryUpdateRequest())

    assert category.name == "Pets"
    assert client.calls[0]["method"] == "GET"


def test_supabase_delete_raises_not_found_when_nothing_deleted() -> None:
    repository = SupabaseCategoriesRepository(client=_ClientStub(rows=[]))

    with pytest.raises(NotFoundError, match="Category not found"):
        repository.delete_user_category(USER_ID, UUID(CATEGORY_ID))


def test_supabase_malformed_category_row_raises_store_error() -> None:
    client = _ClientStub(rows=[{"id": "not-a-uuid", "name": "Groceries"}])
    repository = SupabaseCategoriesRepository(client=client)

    with pytest.raises(StoreError, match="Invalid row returned by store"):
        repository.find_default_category("Groceries")
