"""Check category names against the default and custom namespaces."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from uuid import UUID

from backend.repositories.categories_repository import CategoriesRepository


logger = logging.getLogger(__name__)


class DefaultCategoryNames:
    """Read-through cache of default category names.

    With `ttl_seconds <= 0` every call reads the repository.
    """

    def __init__(
        self,
        repository: CategoriesRepository,
        *,
        ttl_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._names: frozenset[str] | None = None
        self._loaded_at = 0.0

    @property
    def enabled(self) -> bool:
        return self._ttl_seconds > 0

    def contains(self, name: str) -> bool:
        if not self.enabled:
            return self._repository.find_default_category(name) is not None
        return name in self._load()

    def invalidate(self) -> None:
        with self._lock:
            self._names = None

    def _load(self) -> frozenset[str]:
        with self._lock:
            now = self._clock()
            if self._names is None or now - self._loaded_at >= self._ttl_seconds:
                categories = self._repository.list_default_categories()
                self._names = frozenset(category.name for category in categories)
                self._loaded_at = now
                logger.info("default_categories_cache_refreshed count=%s", len(self._names))
            return self._names


class CategoryValidator:
    """Answer whether a category name may be used by a user.

    Default categories are checked first; custom categories only when a user
    is given. Names match exactly (case-sensitive).
    """

    def __init__(self, repository: CategoriesRepository, defaults: DefaultCategoryNames | None = None) -> None:
        self._repository = repository
        self._defaults = defaults or DefaultCategoryNames(repository)

    @property
    def defaults(self) -> DefaultCategoryNames:
        return self._defaults

    def is_default(self, name: str) -> bool:
        return self._defaults.contains(name)

    def exists(self, name: str, user_id: UUID | None = None) -> bool:
        if self.is_default(name):
            return True
        if user_id is not None:
            return self._repository.find_user_category(user_id, name) is not None
        return False
