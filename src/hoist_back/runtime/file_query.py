"""
Query builder for the embedded JSON record store.

Every terminal call loads the table, filters with a linear scan, sorts
(stable) if an order is set, then applies the row cap. Mutations run as one
locked load-modify-persist cycle.
"""

from __future__ import annotations

import logging
from typing import Any, Self

from hoist_back.core.errors import InvalidRecord, MissingFilter
from hoist_back.runtime.predicate import filter_records, sort_key
from hoist_back.runtime.query import Query
from hoist_back.runtime.record_store import RecordStore, allocate_id
from hoist_back.runtime.values import Record, validate_payload
from hoist_back.specs.query import QuerySpec

logger = logging.getLogger(__name__)


class FileQuery(Query):
    """Query against one table of a RecordStore."""

    def __init__(self, store: RecordStore, spec: QuerySpec):
        super().__init__(spec)
        self.store = store

    def _derive(self, spec: QuerySpec) -> Self:
        return type(self)(self.store, spec)

    def _execute(self, records: list[Record]) -> list[Record]:
        """Filter then sort a loaded table."""
        results = filter_records(records, self._spec.predicates)
        order = self._spec.order
        if order is not None and results:
            # sorted() is stable for reverse=True as well, so ties keep table order.
            results = sorted(
                results,
                key=lambda record: sort_key(record, order.field),
                reverse=order.descending,
            )
        return results

    def _fetch(self, limit: int | None = None, *, from_end: bool = False) -> list[Record]:
        results = self._execute(self.store.load(self.table_name))
        if limit is not None:
            results = results[-limit:] if from_end else results[:limit]
        return results

    def count(self) -> int:
        return len(filter_records(self.store.load(self.table_name), self._spec.predicates))

    def insert(self, data: Any) -> int:
        """
        Insert a record.

        Args:
            data: Field => value mapping, without an id

        Returns:
            The id assigned by the store

        Raises:
            InvalidRecord: If data is empty, malformed, or carries an id
        """
        payload = validate_payload(data, "insert")
        if "id" in payload:
            raise InvalidRecord("Insert data must not contain 'id'; ids are assigned by the store.")

        with self.store.mutate(self.table_name) as mutation:
            new_id = allocate_id(mutation.records)
            mutation.records.append({"id": new_id, **payload})
            mutation.changed = True
        logger.debug(f"Inserted {self.table_name}#{new_id}")
        return new_id

    def update(self, data: Any) -> int:
        """
        Merge `data` into every record matching the conditions.

        An `id` key in data is ignored; ids never change.

        Returns:
            Number of records updated

        Raises:
            MissingFilter: If no where() condition was given
        """
        payload = validate_payload(data, "update")
        if not self._spec.has_filter:
            raise MissingFilter("update", self.table_name)
        payload.pop("id", None)
        if not payload:
            return 0

        affected = 0
        with self.store.mutate(self.table_name) as mutation:
            for record in filter_records(mutation.records, self._spec.predicates):
                record.update(payload)
                affected += 1
            mutation.changed = affected > 0
        logger.debug(f"Updated {affected} records in {self.table_name}")
        return affected

    def delete(self) -> int:
        """
        Remove every record matching the conditions.

        Returns:
            Number of records removed

        Raises:
            MissingFilter: If no where() condition was given
        """
        if not self._spec.has_filter:
            raise MissingFilter("delete", self.table_name)

        with self.store.mutate(self.table_name) as mutation:
            doomed = {id(r) for r in filter_records(mutation.records, self._spec.predicates)}
            if doomed:
                mutation.records = [r for r in mutation.records if id(r) not in doomed]
                mutation.changed = True
        logger.debug(f"Deleted {len(doomed)} records from {self.table_name}")
        return len(doomed)
