"""Statistics derived from transaction rows."""

from backend.reporting.statistics import aggregate_by_category, parse_amount, summarize_transactions

__all__ = ["aggregate_by_category", "parse_amount", "summarize_transactions"]
