"""Repository interfaces and adapters for default and custom categories.

Default categories live in the `categories` table and are visible to every
user. Custom categories live in `user_categories` and are scoped by `user_id`.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID, uuid4

from pydantic import ValidationError

from backend.db.supabase_client import SupabaseClient
from backend.errors import NotFoundError, StoreError
from shared.models import Category, CategoryCreateRequest, CategoryUpdateRequest


logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES_TABLE = "categories"
USER_CATEGORIES_TABLE = "user_categories"

_DEFAULT_SELECT = "id,name,icon,color,created_at"
_USER_SELECT = "id,user_id,name,icon,color,created_at"

DEFAULT_CATEGORY_SEED: tuple[tuple[str, str, str], ...] = (
    ("Bills & Utilities", "💡", "#F7DC6F"),
    ("Education", "📚", "#5DADE2"),
    ("Entertainment", "🎬", "#AF7AC5"),
    ("Food & Dining", "🍔", "#FF6B6B"),
    ("Groceries", "🛒", "#58D68D"),
    ("Healthcare", "🏥", "#EC7063"),
    ("Other", "📝", "#85C1E9"),
    ("Salary", "💰", "#52BE80"),
    ("Shopping", "🛍️", "#F5B041"),
    ("Transport", "🚗", "#4ECDC4"),
)


class CategoriesRepository(Protocol):
    def list_default_categories(self) -> list[Category]:
        """Return default categories sorted by name."""

    def list_user_categories(self, user_id: UUID) -> list[Category]:
        """Return the user's custom categories sorted by name."""

    def find_default_category(self, name: str) -> Category | None:
        """Return the default category named exactly `name`."""

    def find_user_category(self, user_id: UUID, name: str) -> Category | None:
        """Return the user's custom category named exactly `name`."""

    def create_user_category(self, user_id: UUID, request: CategoryCreateRequest) -> Category:
        """Create and return a custom category."""

    def update_user_category(self, user_id: UUID, category_id: UUID, request: CategoryUpdateRequest) -> Category:
        """Update and return a custom category owned by `user_id`."""

    def delete_user_category(self, user_id: UUID, category_id: UUID) -> None:
        """Delete a custom category owned by `user_id`."""


class InMemoryCategoriesRepository:
    """In-memory categories repository used by tests/dev."""

    def __init__(self, defaults: list[Category] | None = None) -> None:
        if defaults is None:
            defaults = [
                Category(id=uuid4(), name=name, icon=icon, color=color)
                for name, icon, color in DEFAULT_CATEGORY_SEED
            ]
        self._defaults: list[Category] = list(defaults)
        self._custom: list[Category] = []
        self._lock = threading.Lock()

    def list_default_categories(self) -> list[Category]:
        return sorted(self._defaults, key=lambda category: category.name)

    def list_user_categories(self, user_id: UUID) -> list[Category]:
        with self._lock:
            owned = [category for category in self._custom if category.user_id == user_id]
        return sorted(owned, key=lambda category: category.name)

    def find_default_category(self, name: str) -> Category | None:
        return next((category for category in self._defaults if category.name == name), None)

    def find_user_category(self, user_id: UUID, name: str) -> Category | None:
        with self._lock:
            return next(
                (category for category in self._custom if category.user_id == user_id and category.name == name),
                None,
            )

    def create_user_category(self, user_id: UUID, request: CategoryCreateRequest) -> Category:
        category = Category(
            id=uuid4(),
            user_id=user_id,
            name=request.name,
            icon=request.icon,
            color=request.color,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._custom.append(category)
        return category

    def update_user_category(self, user_id: UUID, category_id: UUID, request: CategoryUpdateRequest) -> Category:
        with self._lock:
            for index, category in enumerate(self._custom):
                if category.id != category_id or category.user_id != user_id:
                    continue

                updated_category = category.model_copy(update=request.to_patch())
                self._custom[index] = updated_category
                return updated_category

        raise NotFoundError("Category not found")

    def delete_user_category(self, user_id: UUID, category_id: UUID) -> None:
        with self._lock:
            kept_categories = [
                category
                for category in self._custom
                if not (category.id == category_id and category.user_id == user_id)
            ]
            if len(kept_categories) == len(self._custom):
                raise NotFoundError("Category not found")
            self._custom = kept_categories


def _category_from_row(row: dict[str, object]) -> Category:
    """Parse a stored row, raising `StoreError` when the store returned malformed data."""
    try:
        return Category.model_validate(row)
    except ValidationError as exc:
        logger.warning("category_row_invalid id=%s errors=%s", row.get("id"), exc.error_count())
        raise StoreError(f"Invalid row returned by store: category {row.get('id')}") from exc


class SupabaseCategoriesRepository:
    """Supabase-backed categories repository."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def list_default_categories(self) -> list[Category]:
        rows, _ = self._client.get_rows(
            table=DEFAULT_CATEGORIES_TABLE,
            query=[("select", _DEFAULT_SELECT), ("order", "name.asc")],
            with_count=False,
        )
        return [_category_from_row(row) for row in rows]

    def list_user_categories(self, user_id: UUID) -> list[Category]:
        rows, _ = self._client.get_rows(
            table=USER_CATEGORIES_TABLE,
            query=[
                ("user_id", f"eq.{user_id}"),
                ("select", _USER_SELECT),
                ("order", "name.asc"),
            ],
            with_count=False,
        )
        return [_category_from_row(row) for row in rows]

    def find_default_category(self, name: str) -> Category | None:
        rows, _ = self._client.get_rows(
            table=DEFAULT_CATEGORIES_TABLE,
            query={"name": f"eq.{name}", "select": _DEFAULT_SELECT, "limit": 1},
            with_count=False,
        )
        return _category_from_row(rows[0]) if rows else None

    def find_user_category(self, user_id: UUID, name: str) -> Category | None:
        rows, _ = self._client.get_rows(
            table=USER_CATEGORIES_TABLE,
            query={
                "user_id": f"eq.{user_id}",
                "name": f"eq.{name}",
                "select": _USER_SELECT,
                "limit": 1,
            },
            with_count=False,
        )
        return _category_from_row(rows[0]) if rows else None

    def _get_user_category_or_raise(self, user_id: UUID, category_id: UUID) -> Category:
        rows, _ = self._client.get_rows(
            table=USER_CATEGORIES_TABLE,
            query={
                "user_id": f"eq.{user_id}",
                "id": f"eq.{category_id}",
                "select": _USER_SELECT,
                "limit": 1,
            },
            with_count=False,
        )
        if not rows:
            raise NotFoundError("Category not found")
        return _category_from_row(rows[0])

    def create_user_category(self, user_id: UUID, request: CategoryCreateRequest) -> Category:
        rows = self._client.post_rows(
            table=USER_CATEGORIES_TABLE,
            query={"select": _USER_SELECT},
            payload={
                "user_id": str(user_id),
                "name": request.name,
                "icon": request.icon,
                "color": request.color,
            },
        )
        if not rows:
            raise StoreError("Supabase did not return created category")
        return _category_from_row(rows[0])

    def update_user_category(self, user_id: UUID, category_id: UUID, request: CategoryUpdateRequest) -> Category:
        payload = request.to_patch()
        if not payload:
            return self._get_user_category_or_raise(user_id, category_id)

        rows = self._client.patch_rows(
            table=USER_CATEGORIES_TABLE,
            query={
                "id": f"eq.{category_id}",
                "user_id": f"eq.{user_id}",
                "select": _USER_SELECT,
            },
            payload=payload,
        )
        if not rows:
            raise NotFoundError("Category not found")
        return _category_from_row(rows[0])

    def delete_user_category(self, user_id: UUID, category_id: UUID) -> None:
        rows = self._client.delete_rows(
            table=USER_CATEGORIES_TABLE,
            query={
                "id": f"eq.{category_id}",
                "user_id": f"eq.{user_id}",
                "select": "id",
            },
        )
        if not rows:
            raise NotFoundError("Category not found")
