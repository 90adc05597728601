"""Pydantic contracts shared across the API and backend layers."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    field_validator,
    model_validator,
)


DEFAULT_CATEGORY_ICON = "📝"
DEFAULT_CATEGORY_COLOR = "#85C1E9"
DEFAULT_PAGE_LIMIT = 50

# Amounts stay Decimal in memory and are emitted as JSON numbers.
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ErrorCode(str, Enum):
    """Stable error codes returned by the finance service."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    BACKEND_ERROR = "BACKEND_ERROR"


class ApiError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: ErrorCode
    message: str
    details: dict[str, object] | None = None


class TransactionType(str, Enum):
    """Kind of a transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class CategoryScope(str, Enum):
    """Namespace a category lives in."""

    DEFAULT = "default"
    CUSTOM = "custom"


class Transaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: UUID
    user_id: UUID
    title: str
    description: str | None = None
    amount: Amount
    category: str
    transaction_type: TransactionType
    date: dt.date
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


def _require_text(value: str | None, message: str) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        raise ValueError(message)
    return stripped


class TransactionCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str | None = None
    amount: Decimal
    category: str
    transaction_type: TransactionType = TransactionType.EXPENSE
    date: dt.date | None = None

    @model_validator(mode="before")
    @classmethod
    def require_core_fields(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            missing = [name for name in ("title", "amount", "category") if data.get(name) in (None, "")]
            if missing:
                raise ValueError("Title, amount, and category are required")
            # Blank optional fields fall back to their defaults.
            data = {
                key: value
                for key, value in data.items()
                if not (key in ("transaction_type", "date") and value in (None, ""))
            }
        return data

    @field_validator("title", "category")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _require_text(value, "Title, amount, and category are required")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: Decimal) -> Decimal:
        if not value.is_finite() or value <= 0:
            raise ValueError("Amount must be greater than 0")
        return value


class TransactionUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    description: str | None = None
    amount: Decimal | None = None
    category: str | None = None
    transaction_type: TransactionType | None = None
    date: dt.date | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str | None) -> str | None:
        return _require_text(value, "Title cannot be empty")

    @field_validator("category")
    @classmethod
    def strip_category(cls, value: str | None) -> str | None:
        return _require_text(value, "Category cannot be empty")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: Decimal | None) -> Decimal | None:
        if value is not None and (not value.is_finite() or value <= 0):
            raise ValueError("Amount must be greater than 0")
        return value

    @model_validator(mode="after")
    def reject_null_fields(self) -> "TransactionUpdateRequest":
        for name in ("title", "amount", "category", "transaction_type", "date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_patch(self) -> dict[str, object]:
        """Return only the fields the caller sent, JSON-ready for the store."""
        patch = self.model_dump(mode="json", exclude_unset=True)
        if "amount" in patch:
            patch["amount"] = float(self.amount)
        return patch


class TransactionFilters(BaseModel):
    """Optional constraints for transaction reads; empty values mean no constraint."""

    model_config = ConfigDict(extra="ignore")

    category: str | None = None
    transaction_type: TransactionType | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    limit: int = Field(default=DEFAULT_PAGE_LIMIT, ge=1)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def drop_empty_values(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None and value != ""}
        return data


class Pagination(BaseModel):
    model_config = ConfigDict(extra="forbid")

    limit: int
    offset: int
    total: int


class TransactionListResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: list[Transaction]
    pagination: Pagination


class TransactionSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_income: Amount = Decimal("0")
    total_expenses: Amount = Decimal("0")
    net_balance: Amount = Decimal("0")
    transaction_count: int = 0


class CategoryStat(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str
    total_amount: Amount = Decimal("0")
    transaction_count: int = 0
    transaction_type: str


class Category(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: UUID
    name: str
    icon: str | None = None
    color: str | None = None
    user_id: UUID | None = None
    created_at: dt.datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def scope(self) -> CategoryScope:
        return CategoryScope.DEFAULT if self.user_id is None else CategoryScope.CUSTOM


class CategoryCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    icon: str = DEFAULT_CATEGORY_ICON
    color: str = DEFAULT_CATEGORY_COLOR

    @model_validator(mode="before")
    @classmethod
    def apply_defaults(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            if data.get("name") in (None, ""):
                raise ValueError("Category name is required")
            data = {key: value for key, value in data.items() if value not in (None, "")}
        return data

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return _require_text(value, "Category name is required")


class CategoryUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    icon: str | None = None
    color: str | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        return _require_text(value, "Category name cannot be empty")

    def to_patch(self) -> dict[str, object]:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


class CategoriesListResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: list[Category]
