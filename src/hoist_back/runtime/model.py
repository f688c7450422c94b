"""
Model base class.

Subclasses bind a table and describe how its records are read:

    class User(Model):
        table = "users"
        hidden_fields = ("password",)
        default_order = ("name", "ASC")
        soft_deletes = True

    users = User(db)
    users.get(3)
    users.get_many({"active": True})
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, ClassVar

from hoist_back.core.errors import InvalidQuery
from hoist_back.runtime.adapter import DatabaseAdapter
from hoist_back.runtime.query import Query
from hoist_back.runtime.values import Record
from hoist_back.specs.query import GuardDeleteResult, coerce_predicates


class Model:
    """
    Table-bound data access for one kind of record.

    Filters are either a record id, a {field: value} mapping (equality), or
    a list of (field, operator, value) triples.
    """

    table: ClassVar[str] = ""
    hidden_fields: ClassVar[tuple[str, ...]] = ()
    default_order: ClassVar[tuple[str, str] | None] = None
    soft_deletes: ClassVar[bool] = False

    def __init__(self, db: DatabaseAdapter):
        if not self.table:
            raise TypeError(f"{type(self).__name__} must set a table name")
        self.db = db

    # -------------------------------------------------------------------------
    # Query construction
    # -------------------------------------------------------------------------

    def query(self, filters: Any = None, *, with_deleted: bool = False) -> Query:
        """Build a query for `filters`, honouring soft deletes and default order."""
        query = self.db.table(self.table)
        if filters is not None:
            if isinstance(filters, int) and not isinstance(filters, bool):
                filters = {"id": filters}
            for predicate in coerce_predicates(filters):
                query = query.where(predicate.field, predicate.operator, predicate.value)
        if self.soft_deletes and not with_deleted:
            query = query.where("deleted", "!=", 1)
        if self.default_order is not None:
            query = query.order(*self.default_order)
        return query

    def _required_query(self, filters: Any) -> Query:
        if filters is None or (not isinstance(filters, int) and not filters):
            raise InvalidQuery(f"{type(self).__name__} needs an id or filters for this operation")
        return self.query(filters)

    def _present(self, record: Record | None, include_hidden_fields: bool) -> Record | None:
        if record is None or include_hidden_fields or not self.hidden_fields:
            return record
        return {k: v for k, v in record.items() if k not in self.hidden_fields}

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, filters: Any, include_hidden_fields: bool = False) -> Record | None:
        """Return one record matching an id or filters, or None."""
        return self._present(self._required_query(filters).get(), include_hidden_fields)

    def get_many(
        self,
        filters: Any = None,
        limit: int | None = None,
        include_hidden_fields: bool = False,
    ) -> list[Record]:
        rows = self.query(filters).all(limit)
        if include_hidden_fields or not self.hidden_fields:
            return rows
        return [{k: v for k, v in row.items() if k not in self.hidden_fields} for row in rows]

    def count(self, filters: Any = None) -> int:
        return self.query(filters).count()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, data: dict[str, Any]) -> int:
        """Insert a record and return its id."""
        return self.db.table(self.table).insert(data)

    def save(self, filters: Any, data: dict[str, Any]) -> int:
        """Update the records matching an id or filters; returns the affected count."""
        return self._required_query(filters).update(data)

    def delete(self, filters: Any) -> int:
        """
        Delete the records matching an id or filters.

        With soft deletes the records are flagged (deleted, deleted_at)
        instead of removed.
        """
        query = self._required_query(filters)
        if self.soft_deletes:
            return query.update({"deleted": True, "deleted_at": datetime.now(UTC).isoformat()})
        return query.delete()

    def guard_delete(
        self,
        guards: Iterable[Any] | None,
        record_id: Any,
        cleanups: Iterable[Any] | None = None,
    ) -> GuardDeleteResult:
        """Delete one record unless a guard rule finds records depending on it."""
        return self.db.guard_delete(self.table, guards, record_id, cleanups)
