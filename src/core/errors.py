"""Exceptions raised by the organization repositories and service.

"Not found" is never an exception: lookups and conditional mutations return
``None`` instead. Publishing failures are never raised either.
"""

from __future__ import annotations

from typing import Any


class OrganizationError(Exception):
    """Base class for organization errors."""


class OrganizationValidationError(OrganizationError, ValueError):
    """Input rejected before any storage access."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class RepositoryError(OrganizationError):
    """Storage failure (connection, constraint or transaction).

    Args:
        operation: Repository operation that failed, e.g. ``"create"``
        message: Human readable description
    """

    def __init__(self, operation: str, message: str | None = None):
        self.operation = operation
        self.message = message or f"organization {operation} failed"
        super().__init__(self.message)


class BulkOperationError(RepositoryError):
    """A bulk operation stopped partway.

    ``items`` holds what was already written before the failure, so callers
    can reconcile; ``processed`` is its length and ``index`` is the position
    of the request that failed.
    """

    def __init__(
        self,
        operation: str,
        index: int,
        items: list[Any],
        cause: Exception,
    ):
        self.index = index
        self.items = items
        self.processed = len(items)
        self.cause = cause
        super().__init__(
            operation,
            f"{operation} failed at item {index} after {len(items)} succeeded: {cause}",
        )
