"""
Query builder for relational backends.

Translates the shared query grammar into parameterized SQL so results line
up with the embedded store:
- rows without an explicit order come back in id order
- ordering ties are broken by id, keeping insertion order
- != also matches NULL columns (a null never equals a non-null value)
- LIKE is literal, case-sensitive containment rather than an SQL pattern
"""

from __future__ import annotations

import logging
from typing import Any, Self

from hoist_back.core.errors import InvalidRecord, MissingFilter
from hoist_back.runtime.coercion import coerce_row, python_to_db
from hoist_back.runtime.db_backend import RelationalBackend, quote_identifier
from hoist_back.runtime.query import Query
from hoist_back.runtime.values import Record, to_text, validate_payload
from hoist_back.specs.query import Direction, Operator, Predicate, QuerySpec

logger = logging.getLogger(__name__)

# Operator mapping to SQL
OPERATOR_SQL: dict[Operator, str] = {
    Operator.EQ: "{field} = {ph}",
    Operator.NE: "({field} IS NULL OR {field} != {ph})",
    Operator.LT: "{field} < {ph}",
    Operator.GT: "{field} > {ph}",
    Operator.LTE: "{field} <= {ph}",
    Operator.GTE: "{field} >= {ph}",
}


class SqlQuery(Query):
    """Query against one table of a relational backend."""

    def __init__(self, backend: RelationalBackend, spec: QuerySpec):
        super().__init__(spec)
        self.backend = backend

    def _derive(self, spec: QuerySpec) -> Self:
        return type(self)(self.backend, spec)

    @property
    def _table_sql(self) -> str:
        return quote_identifier(self.table_name)

    # -------------------------------------------------------------------------
    # SQL generation
    # -------------------------------------------------------------------------

    def _condition_sql(self, predicate: Predicate) -> tuple[str, list[Any]]:
        """Convert one predicate to an SQL fragment and its parameters."""
        field = quote_identifier(predicate.field)
        ph = self.backend.placeholder

        if predicate.value is None:
            if predicate.operator == Operator.EQ:
                return f"{field} IS NULL", []
            if predicate.operator == Operator.NE:
                return f"{field} IS NOT NULL", []
            # Ordering and containment against null never match.
            return "1 = 0", []

        if predicate.operator == Operator.CONTAINS:
            # Search for the text of the stored form: True is stored as 1.
            needle = python_to_db(predicate.value)
            if not isinstance(needle, str):
                needle = to_text(needle)
            return self.backend.contains_sql(field), [needle]

        sql = OPERATOR_SQL[predicate.operator].format(field=field, ph=ph)
        return sql, [python_to_db(predicate.value)]

    def build_where(self) -> tuple[str, list[Any]]:
        """Build the WHERE clause (empty string when there are no conditions)."""
        if not self._spec.predicates:
            return "", []
        fragments: list[str] = []
        params: list[Any] = []
        for predicate in self._spec.predicates:
            sql, values = self._condition_sql(predicate)
            fragments.append(sql)
            params.extend(values)
        return " WHERE " + " AND ".join(fragments), params

    def build_order(self, *, reverse: bool = False) -> str:
        """Build the ORDER BY clause, optionally flipped for reading from the end."""
        order = self._spec.order
        id_direction = Direction.DESC if reverse else Direction.ASC
        if order is None or order.field == "id":
            direction = order.direction if order is not None else Direction.ASC
            if reverse:
                direction = Direction.ASC if direction == Direction.DESC else Direction.DESC
            return f' ORDER BY "id" {direction.value}'

        direction = order.direction
        if reverse:
            direction = Direction.ASC if direction == Direction.DESC else Direction.DESC
        # Nulls sort first in ascending order, as in the embedded store.
        nulls = "NULLS FIRST" if direction == Direction.ASC else "NULLS LAST"
        field = quote_identifier(order.field)
        return f' ORDER BY {field} {direction.value} {nulls}, "id" {id_direction.value}'

    def build_select(self, limit: int | None = None, *, reverse: bool = False) -> tuple[str, list[Any]]:
        where, params = self.build_where()
        sql = f"SELECT * FROM {self._table_sql}{where}{self.build_order(reverse=reverse)}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return sql, params

    def build_count(self) -> tuple[str, list[Any]]:
        where, params = self.build_where()
        return f"SELECT COUNT(*) AS total FROM {self._table_sql}{where}", params

    # -------------------------------------------------------------------------
    # Terminal reads
    # -------------------------------------------------------------------------

    def _fetch(self, limit: int | None = None, *, from_end: bool = False) -> list[Record]:
        sql, params = self.build_select(limit, reverse=from_end)
        rows = self.backend.fetch_all(sql, params)
        if from_end:
            rows.reverse()
        return rows

    def count(self) -> int:
        sql, params = self.build_count()
        return int(self.backend.fetch_value(sql, params) or 0)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def insert(self, data: Any) -> int:
        payload = validate_payload(data, "insert")
        if "id" in payload:
            raise InvalidRecord("Insert data must not contain 'id'; ids are assigned by the database.")
        new_id = self.backend.insert(self.table_name, coerce_row(payload))
        logger.debug(f"Inserted {self.table_name}#{new_id}")
        return new_id

    def update(self, data: Any) -> int:
        payload = validate_payload(data, "update")
        if not self._spec.has_filter:
            raise MissingFilter("update", self.table_name)
        payload.pop("id", None)
        if not payload:
            return 0

        row = coerce_row(payload)
        ph = self.backend.placeholder
        set_clause = ", ".join(f"{quote_identifier(k)} = {ph}" for k in row)
        where, where_params = self.build_where()
        sql = f"UPDATE {self._table_sql} SET {set_clause}{where}"
        affected = self.backend.execute(sql, [*row.values(), *where_params])
        logger.debug(f"Updated {affected} rows in {self.table_name}")
        return affected

    def delete(self) -> int:
        if not self._spec.has_filter:
            raise MissingFilter("delete", self.table_name)
        where, params = self.build_where()
        affected = self.backend.execute(f"DELETE FROM {self._table_sql}{where}", params)
        logger.debug(f"Deleted {affected} rows from {self.table_name}")
        return affected
