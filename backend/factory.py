"""Composition root for backend services."""

from __future__ import annotations

import logging

from backend.db.supabase_client import SupabaseClient, SupabaseSettings
from backend.repositories.categories_repository import (
    CategoriesRepository,
    InMemoryCategoriesRepository,
    SupabaseCategoriesRepository,
)
from backend.repositories.transactions_repository import (
    InMemoryTransactionsRepository,
    SupabaseTransactionsRepository,
    TransactionsRepository,
)
from backend.services.category_validator import CategoryValidator, DefaultCategoryNames
from backend.services.finance_service import FinanceService
from shared import config


logger = logging.getLogger(__name__)


def build_supabase_client() -> SupabaseClient | None:
    """Return a PostgREST client when Supabase is configured."""

    supabase_url = config.supabase_url()
    supabase_key = config.supabase_service_role_key()
    if not supabase_url or not supabase_key:
        return None
    return SupabaseClient(
        settings=SupabaseSettings(
            url=supabase_url,
            service_role_key=supabase_key,
        )
    )


def build_finance_service() -> FinanceService:
    """Build the finance service with repository adapters.

    Without Supabase settings the service runs on in-memory repositories
    seeded with the default categories.
    """

    transactions_repository: TransactionsRepository
    categories_repository: CategoriesRepository

    supabase_client = build_supabase_client()
    if supabase_client is not None:
        transactions_repository = SupabaseTransactionsRepository(client=supabase_client)
        categories_repository = SupabaseCategoriesRepository(client=supabase_client)
    else:
        logger.warning("supabase_not_configured using_in_memory_repositories=true")
        transactions_repository = InMemoryTransactionsRepository()
        categories_repository = InMemoryCategoriesRepository()

    defaults = DefaultCategoryNames(
        categories_repository,
        ttl_seconds=config.default_categories_cache_ttl_seconds(),
    )
    return FinanceService(
        transactions_repository=transactions_repository,
        categories_repository=categories_repository,
        category_validator=CategoryValidator(categories_repository, defaults),
    )
