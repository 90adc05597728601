"""Finance service: transactions, categories and statistics for one user.

Every public method returns either its result model or an `ApiError`, so
callers never see raw repository exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from backend.errors import InvalidInputError, NotFoundError, StoreError
from backend.reporting.statistics import aggregate_by_category, summarize_transactions
from backend.repositories.categories_repository import CategoriesRepository
from backend.repositories.transactions_repository import TransactionsRepository
from backend.services.category_validator import CategoryValidator
from shared.models import (
    ApiError,
    CategoriesListResult,
    Category,
    CategoryCreateRequest,
    CategoryStat,
    CategoryUpdateRequest,
    ErrorCode,
    Pagination,
    Transaction,
    TransactionCreateRequest,
    TransactionFilters,
    TransactionListResult,
    TransactionSummary,
    TransactionUpdateRequest,
)


logger = logging.getLogger(__name__)

INVALID_CATEGORY_MESSAGE = "Invalid category. Use existing category or create a custom one first."
DUPLICATE_CATEGORY_MESSAGE = "Category with this name already exists"

_SUMMARY_FILTER_KEYS = ("start_date", "end_date")
_CATEGORY_STATS_FILTER_KEYS = ("start_date", "end_date", "transaction_type")


def _validation_message(exc: ValidationError) -> str:
    messages: list[str] = []
    for error in exc.errors(include_url=False, include_context=False, include_input=False):
        message = str(error.get("msg", "Invalid input")).removeprefix("Value error, ")
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid input"


def _to_api_error(exc: Exception) -> ApiError:
    if isinstance(exc, ValidationError):
        return ApiError(
            code=ErrorCode.VALIDATION_ERROR,
            message=_validation_message(exc),
            details={"validation_errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        )
    if isinstance(exc, InvalidInputError):
        return ApiError(code=ErrorCode.VALIDATION_ERROR, message=str(exc))
    if isinstance(exc, NotFoundError):
        return ApiError(code=ErrorCode.NOT_FOUND, message=str(exc))
    if isinstance(exc, StoreError):
        details: dict[str, object] | None = None
        if exc.status_code is not None:
            details = {"status_code": exc.status_code}
        return ApiError(code=ErrorCode.BACKEND_ERROR, message=str(exc), details=details)
    logger.exception("finance_service_unexpected_error exception_type=%s", type(exc).__name__)
    return ApiError(code=ErrorCode.BACKEND_ERROR, message=str(exc))


def _pick(params: Mapping[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    return {key: params.get(key) for key in keys}


@dataclass(slots=True)
class FinanceService:
    transactions_repository: TransactionsRepository
    categories_repository: CategoriesRepository
    category_validator: CategoryValidator

    def _require_category(self, name: str, user_id: UUID) -> None:
        if not self.category_validator.exists(name, user_id):
            raise InvalidInputError(INVALID_CATEGORY_MESSAGE)

    # Transactions

    def list_transactions(self, user_id: UUID, params: Mapping[str, Any]) -> TransactionListResult | ApiError:
        try:
            filters = TransactionFilters.model_validate(dict(params))
            items = self.transactions_repository.list_transactions(user_id, filters)
            return TransactionListResult(
                items=items,
                pagination=Pagination(limit=filters.limit, offset=filters.offset, total=len(items)),
            )
        except Exception as exc:
            return _to_api_error(exc)

    def get_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction | ApiError:
        try:
            transaction = self.transactions_repository.get_transaction(user_id, transaction_id)
        except Exception as exc:
            return _to_api_error(exc)
        if transaction is None:
            return ApiError(code=ErrorCode.NOT_FOUND, message="Transaction not found")
        return transaction

    def create_transaction(self, user_id: UUID, payload: Mapping[str, Any]) -> Transaction | ApiError:
        try:
            request = TransactionCreateRequest.model_validate(dict(payload))
            self._require_category(request.category, user_id)
            transaction = self.transactions_repository.create_transaction(user_id, request)
        except Exception as exc:
            return _to_api_error(exc)

        logger.info("transaction_created user_id=%s transaction_id=%s", user_id, transaction.id)
        return transaction

    def update_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
        payload: Mapping[str, Any],
    ) -> Transaction | ApiError:
        try:
            request = TransactionUpdateRequest.model_validate(dict(payload))
            existing = self.transactions_repository.get_transaction(user_id, transaction_id)
            if existing is None:
                raise NotFoundError("Transaction not found")
            if request.category is not None:
                self._require_category(request.category, user_id)

            patch = request.to_patch()
            if not patch:
                return existing
            transaction = self.transactions_repository.update_transaction(user_id, transaction_id, patch)
        except Exception as exc:
            return _to_api_error(exc)

        logger.info(
            "transaction_updated user_id=%s transaction_id=%s fields=%s",
            user_id,
            transaction_id,
            ",".join(sorted(patch)),
        )
        return transaction

    def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> None | ApiError:
        try:
            if self.transactions_repository.get_transaction(user_id, transaction_id) is None:
                raise NotFoundError("Transaction not found")
            self.transactions_repository.delete_transaction(user_id, transaction_id)
        except Exception as exc:
            return _to_api_error(exc)

        logger.info("transaction_deleted user_id=%s transaction_id=%s", user_id, transaction_id)
        return None

    # Statistics

    def transaction_summary(self, user_id: UUID, params: Mapping[str, Any]) -> TransactionSummary | ApiError:
        try:
            filters = TransactionFilters.model_validate(_pick(params, _SUMMARY_FILTER_KEYS))
            rows = self.transactions_repository.list_transaction_rows(
                user_id,
                filters,
                columns=("amount", "transaction_type"),
            )
            return summarize_transactions(rows)
        except Exception as exc:
            return _to_api_error(exc)

    def category_stats(self, user_id: UUID, params: Mapping[str, Any]) -> list[CategoryStat] | ApiError:
        try:
            filters = TransactionFilters.model_validate(_pick(params, _CATEGORY_STATS_FILTER_KEYS))
            rows = self.transactions_repository.list_transaction_rows(
                user_id,
                filters,
                columns=("category", "amount", "transaction_type"),
            )
            return aggregate_by_category(rows)
        except Exception as exc:
            return _to_api_error(exc)

    # Categories

    def list_categories(self, user_id: UUID) -> CategoriesListResult | ApiError:
        try:
            defaults = self.categories_repository.list_default_categories()
            custom = self.categories_repository.list_user_categories(user_id)
            return CategoriesListResult(items=[*defaults, *custom])
        except Exception as exc:
            return _to_api_error(exc)

    def list_default_categories(self) -> CategoriesListResult | ApiError:
        try:
            return CategoriesListResult(items=self.categories_repository.list_default_categories())
        except Exception as exc:
            return _to_api_error(exc)

    def list_custom_categories(self, user_id: UUID) -> CategoriesListResult | ApiError:
        try:
            return CategoriesListResult(items=self.categories_repository.list_user_categories(user_id))
        except Exception as exc:
            return _to_api_error(exc)

    def create_custom_category(self, user_id: UUID, payload: Mapping[str, Any]) -> Category | ApiError:
        try:
            request = CategoryCreateRequest.model_validate(dict(payload))
            if self.category_validator.exists(request.name, user_id):
                raise InvalidInputError(DUPLICATE_CATEGORY_MESSAGE)
            category = self.categories_repository.create_user_category(user_id, request)
        except Exception as exc:
            return _to_api_error(exc)

        logger.info("custom_category_created user_id=%s category_id=%s", user_id, category.id)
        return category

    def update_custom_category(
        self,
        user_id: UUID,
        category_id: UUID,
        payload: Mapping[str, Any],
    ) -> Category | ApiError:
        try:
            request = CategoryUpdateRequest.model_validate(dict(payload))
            if request.name is not None:
                if self.category_validator.is_default(request.name):
                    raise InvalidInputError(DUPLICATE_CATEGORY_MESSAGE)
                clash = self.categories_repository.find_user_category(user_id, request.name)
                if clash is not None and clash.id != category_id:
                    raise InvalidInputError(DUPLICATE_CATEGORY_MESSAGE)
            category = self.categories_repository.update_user_category(user_id, category_id, request)
        except Exception as exc:
            return _to_api_error(exc)

        logger.info("custom_category_updated user_id=%s category_id=%s", user_id, category_id)
        return category

    def delete_custom_category(self, user_id: UUID, category_id: UUID) -> None | ApiError:
        try:
            self.categories_repository.delete_user_category(user_id, category_id)
        except Exception as exc:
            return _to_api_error(exc)

        logger.info("custom_category_deleted user_id=%s category_id=%s", user_id, category_id)
        return None
