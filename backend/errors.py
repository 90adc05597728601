"""Exceptions raised by repositories and the finance engine."""

from __future__ import annotations


class InvalidInputError(ValueError):
    """Raised when caller input is malformed or violates a business rule."""


class NotFoundError(LookupError):
    """Raised when an entity is missing or not owned by the requesting user."""


class StoreError(RuntimeError):
    """Raised when a call to the remote data store fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
