"""Aggregate transaction rows into summary and per-category statistics.

Both functions are pure: they read the rows they are given and nothing else.
Rows are plain mappings as returned by the store (`amount` may be a number or a
numeric string).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from backend.errors import InvalidInputError
from shared.models import CategoryStat, TransactionSummary, TransactionType


logger = logging.getLogger(__name__)

_KNOWN_TYPES = {member.value for member in TransactionType}


def parse_amount(raw_amount: Any) -> Decimal:
    """Parse a stored amount, failing on anything that is not a finite number."""

    if raw_amount is None or isinstance(raw_amount, bool):
        raise InvalidInputError(f"Invalid transaction amount: {raw_amount!r}")
    try:
        amount = Decimal(str(raw_amount))
    except InvalidOperation as exc:
        raise InvalidInputError(f"Invalid transaction amount: {raw_amount!r}") from exc
    if not amount.is_finite():
        raise InvalidInputError(f"Invalid transaction amount: {raw_amount!r}")
    return amount


def _category_name(row: Mapping[str, Any]) -> str:
    category = row.get("category")
    if not isinstance(category, str):
        raise InvalidInputError(f"Invalid transaction category: {category!r}")
    return category


def _type_value(row: Mapping[str, Any]) -> str:
    raw_type = row.get("transaction_type")
    if isinstance(raw_type, TransactionType):
        return raw_type.value
    value = "" if raw_type is None else str(raw_type)
    if value not in _KNOWN_TYPES:
        logger.warning("statistics_unknown_transaction_type value=%r counted_as=expense", raw_type)
    return value


def summarize_transactions(rows: Iterable[Mapping[str, Any]]) -> TransactionSummary:
    """Return income, expense and net totals for `rows`.

    Any type other than `income` counts as an expense.
    """

    total_income = Decimal("0")
    total_expenses = Decimal("0")
    count = 0

    for row in rows:
        amount = parse_amount(row.get("amount"))
        if _type_value(row) == TransactionType.INCOME.value:
            total_income += amount
        else:
            total_expenses += amount
        count += 1

    return TransactionSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        net_balance=total_income - total_expenses,
        transaction_count=count,
    )


def aggregate_by_category(rows: Iterable[Mapping[str, Any]]) -> list[CategoryStat]:
    """Group `rows` by exact category name, largest total first.

    `transaction_type` on each group is the type of the last row seen for that
    category. Equal totals keep the order in which categories first appeared.
    """

    groups: dict[str, CategoryStat] = {}

    for row in rows:
        category = _category_name(row)
        amount = parse_amount(row.get("amount"))
        type_value = _type_value(row)

        stat = groups.get(category)
        if stat is None:
            stat = CategoryStat(category=category, transaction_type=type_value)
            groups[category] = stat

        stat.total_amount += amount
        stat.transaction_count += 1
        stat.transaction_type = type_value

    return sorted(groups.values(), key=lambda stat: stat.total_amount, reverse=True)
