"""Compile transaction filters into PostgREST predicates.

The predicate list is conjunctive and ordered:

1. ownership (`user_id = <caller>`), always first
2. equality on `category` and `transaction_type`
3. inclusive `date` bounds
4. ordering by `date` descending
5. the `[offset, offset + limit - 1]` result window

Filters that are absent (or were empty strings, see `TransactionFilters`)
contribute nothing. Nothing here raises: invalid values are rejected when the
caller validates the filters.
"""

from __future__ import annotations

from uuid import UUID

from shared.models import Transaction, TransactionFilters


Predicate = tuple[str, str | int]


def build_transaction_query(
    user_id: UUID,
    filters: TransactionFilters,
    *,
    paginate: bool = True,
) -> list[Predicate]:
    """Return the predicate list for reading `user_id`'s transactions."""

    query: list[Predicate] = [("user_id", f"eq.{user_id}")]

    if filters.category:
        query.append(("category", f"eq.{filters.category}"))

    if filters.transaction_type is not None:
        query.append(("transaction_type", f"eq.{filters.transaction_type.value}"))

    if filters.start_date is not None:
        query.append(("date", f"gte.{filters.start_date.isoformat()}"))

    if filters.end_date is not None:
        query.append(("date", f"lte.{filters.end_date.isoformat()}"))

    if paginate:
        query.append(("order", "date.desc"))
        query.append(("offset", filters.offset))
        query.append(("limit", filters.limit))

    return query


def matches_filters(transaction: Transaction, user_id: UUID, filters: TransactionFilters) -> bool:
    """Evaluate the same predicates in process, for the in-memory store."""

    if transaction.user_id != user_id:
        return False
    if filters.category and transaction.category != filters.category:
        return False
    if filters.transaction_type is not None and transaction.transaction_type != filters.transaction_type:
        return False
    if filters.start_date is not None and transaction.date < filters.start_date:
        return False
    if filters.end_date is not None and transaction.date > filters.end_date:
        return False
    return True


def apply_window(rows: list[Transaction], filters: TransactionFilters) -> list[Transaction]:
    """Sort by date descending and cut the requested page."""

    ordered = sorted(rows, key=lambda row: row.date, reverse=True)
    return ordered[filters.offset : filters.offset + filters.limit]
