"""
Fluent query interface shared by every backend.

    db.table("users").where("age", ">", 18).order("name").all(limit=10)

Builders are immutable: where() and order() return a new query, so a
partially built query can be reused as a base for several others. Terminal
operations never consume or reset the query and always re-read storage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Self

from hoist_back.runtime.values import Record
from hoist_back.specs.query import (
    Direction,
    OrderSpec,
    Predicate,
    QuerySpec,
    validate_identifier,
)


def normalize_limit(limit: Any) -> int | None:
    """Return a positive integer row cap, or None when the limit should be ignored."""
    if limit is None or isinstance(limit, bool):
        return None
    if isinstance(limit, int):
        return limit if limit > 0 else None
    if isinstance(limit, float) and limit.is_integer():
        return int(limit) if limit > 0 else None
    if isinstance(limit, str) and limit.strip().isdigit():
        value = int(limit.strip())
        return value if value > 0 else None
    return None


class Query(ABC):
    """
    Base class for backend query builders.

    Subclasses implement the terminal reads (_fetch, count) and the
    mutations (insert, update, delete).
    """

    def __init__(self, spec: QuerySpec):
        self._spec = spec

    @property
    def spec(self) -> QuerySpec:
        return self._spec

    @property
    def table_name(self) -> str:
        return self._spec.table

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._spec!r})"

    @abstractmethod
    def _derive(self, spec: QuerySpec) -> Self:
        """Return a query of the same backend carrying `spec`."""

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def table(self, name: str) -> Self:
        """Start a fresh query on another table of the same backend."""
        return self._derive(QuerySpec(table=validate_identifier(name, "table name")))

    def where(self, field: str, operator: Any, value: Any) -> Self:
        """Add a condition; repeated calls are ANDed together."""
        return self._derive(self._spec.with_predicate(Predicate.of(field, operator, value)))

    def order(self, field: str, direction: Any = "ASC") -> Self:
        """Set the sort key, replacing any previous one."""
        order = OrderSpec(
            field=validate_identifier(field, "ORDER BY field"),
            direction=Direction.parse(direction),
        )
        return self._derive(self._spec.with_order(order))

    # -------------------------------------------------------------------------
    # Terminal reads
    # -------------------------------------------------------------------------

    @abstractmethod
    def _fetch(self, limit: int | None = None, *, from_end: bool = False) -> list[Record]:
        """Run the query; `from_end` returns the tail of the ordered result instead."""

    def all(self, limit: Any = None) -> list[Record]:
        """Return every matching record, ordered if order() was set, capped at `limit`."""
        return self._fetch(normalize_limit(limit))

    def get(self) -> Record | None:
        """Return the first matching record, or None."""
        rows = self._fetch(1)
        return rows[0] if rows else None

    def first(self) -> Record | None:
        return self.get()

    def last_of_ordered(self) -> Record | None:
        """
        Return the final record of the filtered, ordered result, or None.

        This does not reverse the requested order: to get the row with the
        largest `score`, use order("score", "ASC").last_of_ordered().
        """
        rows = self._fetch(1, from_end=True)
        return rows[-1] if rows else None

    def last(self) -> Record | None:
        """Alias of last_of_ordered()."""
        return self.last_of_ordered()

    @abstractmethod
    def count(self) -> int:
        """Number of records matching the conditions."""

    def exists(self) -> bool:
        return self.get() is not None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert(self, data: Any) -> int:
        """Insert one record and return its newly allocated id."""

    @abstractmethod
    def update(self, data: Any) -> int:
        """Merge `data` into every matching record; returns the affected count."""

    @abstractmethod
    def delete(self) -> int:
        """Delete every matching record; returns the removed count."""
