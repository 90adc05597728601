"""Transactions repository adapters over the `transactions` table."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Protocol
from uuid import UUID, uuid4

from pydantic import ValidationError

from backend.db.supabase_client import SupabaseClient
from backend.errors import NotFoundError, StoreError
from backend.repositories.transaction_filters import (
    apply_window,
    build_transaction_query,
    matches_filters,
)
from shared.models import Transaction, TransactionCreateRequest, TransactionFilters


logger = logging.getLogger(__name__)

TRANSACTIONS_TABLE = "transactions"

_SELECT_COLUMNS = "id,user_id,title,description,amount,category,transaction_type,date,created_at,updated_at"


class TransactionsRepository(Protocol):
    def list_transactions(self, user_id: UUID, filters: TransactionFilters) -> list[Transaction]:
        """Return one page of the user's transactions, newest first."""

    def list_transaction_rows(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        *,
        columns: tuple[str, ...],
    ) -> list[dict[str, Any]]:
        """Return every matching row, unpaginated, restricted to `columns`."""

    def get_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction | None:
        """Return a transaction owned by `user_id`, or None."""

    def create_transaction(self, user_id: UUID, request: TransactionCreateRequest) -> Transaction:
        """Insert and return a transaction."""

    def update_transaction(self, user_id: UUID, transaction_id: UUID, patch: dict[str, object]) -> Transaction:
        """Apply `patch` to a transaction owned by `user_id`."""

    def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> None:
        """Delete a transaction owned by `user_id`."""


def _insert_payload(user_id: UUID, request: TransactionCreateRequest) -> dict[str, object]:
    return {
        "user_id": str(user_id),
        "title": request.title,
        "description": request.description,
        "amount": float(request.amount),
        "category": request.category,
        "transaction_type": request.transaction_type.value,
        "date": (request.date or date.today()).isoformat(),
    }


class InMemoryTransactionsRepository:
    """In-memory transactions repository used by tests/dev."""

    def __init__(self, transactions: list[Transaction] | None = None) -> None:
        self._transactions: list[Transaction] = list(transactions or [])
        self._lock = threading.Lock()

    def _filter_rows(self, user_id: UUID, filters: TransactionFilters) -> list[Transaction]:
        with self._lock:
            return [row for row in self._transactions if matches_filters(row, user_id, filters)]

    def list_transactions(self, user_id: UUID, filters: TransactionFilters) -> list[Transaction]:
        return apply_window(self._filter_rows(user_id, filters), filters)

    def list_transaction_rows(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        *,
        columns: tuple[str, ...],
    ) -> list[dict[str, Any]]:
        return [row.model_dump(include=set(columns)) for row in self._filter_rows(user_id, filters)]

    def get_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction | None:
        with self._lock:
            return next(
                (row for row in self._transactions if row.id == transaction_id and row.user_id == user_id),
                None,
            )

    def create_transaction(self, user_id: UUID, request: TransactionCreateRequest) -> Transaction:
        now = datetime.now(timezone.utc)
        transaction = Transaction.model_validate(
            {
                **_insert_payload(user_id, request),
                "amount": request.amount,
                "id": uuid4(),
                "created_at": now,
                "updated_at": now,
            }
        )
        with self._lock:
            self._transactions.append(transaction)
        return transaction

    def update_transaction(self, user_id: UUID, transaction_id: UUID, patch: dict[str, object]) -> Transaction:
        with self._lock:
            for index, row in enumerate(self._transactions):
                if row.id != transaction_id or row.user_id != user_id:
                    continue

                updated = Transaction.model_validate(
                    {**row.model_dump(), **patch, "updated_at": datetime.now(timezone.utc)}
                )
                self._transactions[index] = updated
                return updated

        raise NotFoundError("Transaction not found")

    def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> None:
        with self._lock:
            kept = [
                row for row in self._transactions if not (row.id == transaction_id and row.user_id == user_id)
            ]
            if len(kept) == len(self._transactions):
                raise NotFoundError("Transaction not found")
            self._transactions = kept


def _transaction_from_row(row: dict[str, Any]) -> Transaction:
    """Parse a stored row, raising `StoreError` when the store returned malformed data."""
    try:
        return Transaction.model_validate(row)
    except ValidationError as exc:
        logger.warning("transaction_row_invalid id=%s errors=%s", row.get("id"), exc.error_count())
        raise StoreError(f"Invalid row returned by store: transaction {row.get('id')}") from exc


class SupabaseTransactionsRepository:
    """Supabase repository for the `transactions` table."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def list_transactions(self, user_id: UUID, filters: TransactionFilters) -> list[Transaction]:
        query = [*build_transaction_query(user_id, filters), ("select", _SELECT_COLUMNS)]
        rows, _ = self._client.get_rows(table=TRANSACTIONS_TABLE, query=query, with_count=False)
        return [_transaction_from_row(row) for row in rows]

    def list_transaction_rows(
        self,
        user_id: UUID,
        filters: TransactionFilters,
        *,
        columns: tuple[str, ...],
    ) -> list[dict[str, Any]]:
        query = [*build_transaction_query(user_id, filters, paginate=False), ("select", ",".join(columns))]
        rows, _ = self._client.get_rows(table=TRANSACTIONS_TABLE, query=query, with_count=False)
        return rows

    def get_transaction(self, user_id: UUID, transaction_id: UUID) -> Transaction | None:
        rows, _ = self._client.get_rows(
            table=TRANSACTIONS_TABLE,
            query={
                "id": f"eq.{transaction_id}",
                "user_id": f"eq.{user_id}",
                "select": _SELECT_COLUMNS,
                "limit": 1,
            },
            with_count=False,
        )
        if not rows:
            return None
        return _transaction_from_row(rows[0])

    def create_transaction(self, user_id: UUID, request: TransactionCreateRequest) -> Transaction:
        rows = self._client.post_rows(
            table=TRANSACTIONS_TABLE,
            query={"select": _SELECT_COLUMNS},
            payload=_insert_payload(user_id, request),
        )
        if not rows:
            raise StoreError("Supabase did not return created transaction")
        return _transaction_from_row(rows[0])

    def update_transaction(self, user_id: UUID, transaction_id: UUID, patch: dict[str, object]) -> Transaction:
        rows = self._client.patch_rows(
            table=TRANSACTIONS_TABLE,
            query={
                "id": f"eq.{transaction_id}",
                "user_id": f"eq.{user_id}",
                "select": _SELECT_COLUMNS,
            },
            payload=patch,
        )
        if not rows:
            raise NotFoundError("Transaction not found")
        return _transaction_from_row(rows[0])

    def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> None:
        rows = self._client.delete_rows(
            table=TRANSACTIONS_TABLE,
            query={
                "id": f"eq.{transaction_id}",
                "user_id": f"eq.{user_id}",
                "select": "id",
            },
        )
        if not rows:
            raise NotFoundError("Transaction not found")
