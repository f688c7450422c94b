"""
Error types for the Hoist data layer.

Every failure the record store, query builders and backend adapter raise
derives from HoistDataError. NotFound is deliberately absent: empty lookups
return None.
"""

from __future__ import annotations

from dataclasses import dataclass


class HoistDataError(Exception):
    """Base exception for all Hoist data layer errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StorageUnavailable(HoistDataError):
    """
    Raised when a table's backing file exists but cannot be used.

    Examples:
    - Unreadable file (permissions)
    - Invalid JSON
    - JSON document that is not an array of objects
    - Write or rename failure while persisting
    """

    def __init__(self, message: str, table: str | None = None):
        self.table = table
        super().__init__(message)


class MissingFilter(HoistDataError):
    """Raised when update() or delete() is called without any where() clause."""

    def __init__(self, operation: str, table: str):
        self.operation = operation
        self.table = table
        super().__init__(
            f"{operation.upper()} on '{table}' requires at least one WHERE clause "
            "to prevent accidental mass changes. Use where() first."
        )


class BackendUnavailable(HoistDataError):
    """Raised when the relational backend cannot be reached at call time."""


class QueryError(HoistDataError):
    """Raised when the relational backend rejects a statement."""


class InvalidQuery(HoistDataError, ValueError):
    """
    Raised when a query is malformed.

    Examples:
    - Empty or non-identifier table/field name
    - Unsupported operator
    - Unsupported sort direction
    """


class InvalidRecord(HoistDataError, ValueError):
    """
    Raised when insert/update data is unusable.

    Examples:
    - Empty payload or non-mapping payload
    - Caller-supplied id on insert
    - Values outside null/bool/int/float/str/list/dict
    """


@dataclass(frozen=True)
class BlockingReason:
    """One guard rule that matched existing records."""

    label: str
    table: str
    count: int


class GuardBlocked(HoistDataError):
    """Raised when a guarded delete is refused because dependent records exist."""

    def __init__(self, message: str, blocking: list[BlockingReason]):
        self.blocking = blocking
        super().__init__(message)

    @property
    def labels(self) -> list[str]:
        return [reason.label for reason in self.blocking]
