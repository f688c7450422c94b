"""
Guarded deletes.

Before a record is deleted, every guard rule counts matching records in
another table. One or more matches refuse the whole delete. Only when every
guard is clear are the cleanup rules applied and the target removed.

The check and the deletes run inside one exclusive section of the adapter:
the per-table locks of every involved table on the embedded store, or one
transaction on a relational backend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from hoist_back.core.errors import BlockingReason, GuardBlocked
from hoist_back.runtime.logging import log_with_context
from hoist_back.specs.query import CleanupRule, GuardDeleteResult, GuardRule

if TYPE_CHECKING:
    from hoist_back.runtime.adapter import DatabaseAdapter
    from hoist_back.runtime.query import Query

logger = logging.getLogger(__name__)


def _coerce_rules(rules: Iterable[Any] | None, rule_type: type[CleanupRule]) -> list[Any]:
    """Accept rule objects or plain dicts ({"table", "where", "label"})."""
    if not rules:
        return []
    coerced = []
    for rule in rules:
        if isinstance(rule, rule_type):
            coerced.append(rule)
        elif isinstance(rule, Mapping):
            data = dict(rule)
            # customTitle / custom_title are accepted as label aliases.
            for alias in ("customTitle", "custom_title"):
                if alias in data and "label" not in data:
                    data["label"] = data.pop(alias)
            coerced.append(rule_type.model_validate(data))
        else:
            raise TypeError(f"Expected {rule_type.__name__} or dict, got {type(rule).__name__}")
    return coerced


def blocked_message(table: str) -> str:
    return "There is still information associated with this " + table.replace("_", " ")


class DependencyGuard:
    """Runs guard rules, cleanup rules and the final delete for one target record."""

    def __init__(self, db: DatabaseAdapter):
        self.db = db

    def _rule_query(self, rule: CleanupRule) -> Query:
        query = self.db.table(rule.table)
        for predicate in rule.where:
            query = query.where(predicate.field, predicate.operator, predicate.value)
        return query

    def check(self, guards: list[GuardRule]) -> list[BlockingReason]:
        """Count matches for every guard rule; returns the ones that block."""
        blocking: list[BlockingReason] = []
        for rule in guards:
            count = self._rule_query(rule).count()
            if count:
                blocking.append(BlockingReason(label=rule.display_label, table=rule.table, count=count))
        return blocking

    def run(
        self,
        table: str,
        record_id: Any,
        guards: Iterable[Any] | None,
        cleanups: Iterable[Any] | None = None,
    ) -> int:
        """
        Delete `table`#`record_id` if no guard rule matches.

        Args:
            table: Target table
            record_id: Target record id
            guards: GuardRule objects (or dicts) checked before deleting
            cleanups: CleanupRule objects (or dicts) deleted before the target

        Returns:
            Number of target records removed (0 if it did not exist)

        Raises:
            GuardBlocked: If any guard rule matched; nothing is deleted
        """
        guard_rules = _coerce_rules(guards, GuardRule)
        cleanup_rules = _coerce_rules(cleanups, CleanupRule)
        target = self.db.table(table).where("id", "=", record_id)

        involved = {table, *(r.table for r in guard_rules), *(r.table for r in cleanup_rules)}
        with self.db.exclusive(*involved):
            blocking = self.check(guard_rules)
            if blocking:
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Delete of {table}#{record_id} blocked by dependent records",
                    blocking=[f"{b.label} ({b.count})" for b in blocking],
                )
                raise GuardBlocked(blocked_message(table), blocking)

            if not target.exists():
                return 0

            for rule in cleanup_rules:
                removed = self._rule_query(rule).delete()
                logger.debug(f"Cleanup removed {removed} records from {rule.table}")
            return target.delete()


def guard_delete(
    db: DatabaseAdapter,
    table: str,
    guards: Iterable[Any] | None,
    record_id: Any,
    cleanups: Iterable[Any] | None = None,
) -> GuardDeleteResult:
    """
    Guarded delete returning a result object instead of raising.

    Returns:
        GuardDeleteResult with success, a user-facing message, the blocking
        labels in `errors`, and per-rule counts in `blocking`
    """
    try:
        removed = DependencyGuard(db).run(table, record_id, guards, cleanups)
    except GuardBlocked as exc:
        return GuardDeleteResult(
            success=False,
            message=exc.message,
            errors=exc.labels,
            blocking=[{"label": b.label, "table": b.table, "count": b.count} for b in exc.blocking],
        )
    if not removed:
        return GuardDeleteResult(
            success=False,
            message=f"No {table.replace('_', ' ')} record with id {record_id} was found",
        )
    return GuardDeleteResult(success=True)
