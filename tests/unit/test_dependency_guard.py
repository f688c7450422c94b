"""Tests for guarded deletes."""

from __future__ import annotations

import threading

import pytest

from hoist_back.core.errors import GuardBlocked, QueryError
from hoist_back.runtime.adapter import DatabaseAdapter
from hoist_back.runtime.dependency_guard import DependencyGuard, blocked_message
from hoist_back.specs.query import CleanupRule, GuardRule


@pytest.fixture
def shop(db: DatabaseAdapter) -> DatabaseAdapter:
    """User 1 has one order and two sessions; user 2 has one session."""
    db.table("users").insert({"name": "Alice"})
    db.table("users").insert({"name": "Bob"})
    db.table("orders").insert({"user_id": 1, "total": 100})
    db.table("sessions").insert({"user_id": 1, "token": "a"})
    db.table("sessions").insert({"user_id": 1, "token": "b"})
    db.table("sessions").insert({"user_id": 2, "token": "c"})
    return db


ORDERS_OF_1 = GuardRule(table="orders", where={"user_id": 1}, label="orders")
ORDERS_OF_2 = GuardRule(table="orders", where={"user_id": 2}, label="orders")
SESSIONS_OF_1 = CleanupRule(table="sessions", where=[("user_id", "=", 1)])
SESSIONS_OF_2 = CleanupRule(table="sessions", where=[("user_id", "=", 2)])


class TestRules:
    """Tests for rule construction."""

    def test_default_label(self) -> None:
        rule = GuardRule(table="order_item", where={"order_id": 1})
        assert rule.display_label == "order items"

    def test_explicit_label(self) -> None:
        rule = GuardRule(table="order_items", where={"order_id": 1}, label="line items")
        assert rule.display_label == "line items"

    def test_where_accepts_triples(self) -> None:
        rule = CleanupRule(table="sessions", where=[("user_id", ">=", 3)])
        assert rule.where[0].field == "user_id"
        assert rule.where[0].operator == ">="

    def test_empty_where_rejected(self) -> None:
        with pytest.raises(ValueError):
            CleanupRule(table="sessions", where={})

    def test_bad_table_rejected(self) -> None:
        with pytest.raises(ValueError):
            GuardRule(table="../etc", where={"a": 1})

    def test_blocked_message(self) -> None:
        assert blocked_message("user_account") == (
            "There is still information associated with this user account"
        )


class TestGuardDelete:
    """Tests for DatabaseAdapter.guard_delete on every backend."""

    def test_blocked_deletes_nothing(self, shop: DatabaseAdapter) -> None:
        result = shop.guard_delete("users", [ORDERS_OF_1], 1, [SESSIONS_OF_1])

        assert result.success is False
        assert result.message == "There is still information associated with this users"
        assert result.errors == ["orders"]
        assert result.blocking == [{"label": "orders", "table": "orders", "count": 1}]
        assert shop.table("users").where("id", "=", 1).exists()
        assert shop.table("sessions").where("user_id", "=", 1).count() == 2

    def test_clear_guards_run_cleanups_then_delete(self, shop: DatabaseAdapter) -> None:
        result = shop.guard_delete("users", [ORDERS_OF_2], 2, [SESSIONS_OF_2])

        assert result.success is True
        assert result.errors == []
        assert shop.table("users").where("id", "=", 2).get() is None
        assert shop.table("sessions").where("user_id", "=", 2).count() == 0
        assert shop.table("sessions").where("user_id", "=", 1).count() == 2

    def test_every_blocking_rule_is_reported(self, shop: DatabaseAdapter) -> None:
        guards = [
            ORDERS_OF_1,
            GuardRule(table="sessions", where={"user_id": 1}, label="active sessions"),
            GuardRule(table="order_items", where={"order_id": 1}),
        ]
        result = shop.guard_delete("users", guards, 1)
        assert result.errors == ["orders", "active sessions"]
        assert result.blocking[1]["count"] == 2

    def test_no_guards(self, shop: DatabaseAdapter) -> None:
        assert shop.guard_delete("users", [], 2).success is True
        assert shop.table("users").count() == 1

    def test_missing_target(self, shop: DatabaseAdapter) -> None:
        result = shop.guard_delete("users", [ORDERS_OF_2], 99, [SESSIONS_OF_2])
        assert result.success is False
        assert result.message == "No users record with id 99 was found"
        assert shop.table("sessions").count() == 3

    def test_dict_rules_with_custom_title(self, shop: DatabaseAdapter) -> None:
        guards = [{"table": "orders", "where": {"user_id": 1}, "customTitle": "purchases"}]
        result = shop.guard_delete("users", guards, 1)
        assert result.errors == ["purchases"]

    def test_dict_rule_default_label(self, shop: DatabaseAdapter) -> None:
        result = shop.guard_delete("users", [{"table": "orders", "where": {"user_id": 1}}], 1)
        assert result.errors == ["orderss"]

    def test_rule_of_wrong_type(self, shop: DatabaseAdapter) -> None:
        with pytest.raises(TypeError):
            shop.guard_delete("users", ["orders"], 1)


class TestDependencyGuard:
    """Tests for the raising interface."""

    def test_run_raises_with_counts(self, shop: DatabaseAdapter) -> None:
        with pytest.raises(GuardBlocked) as exc_info:
            DependencyGuard(shop).run("users", 1, [ORDERS_OF_1])
        assert exc_info.value.labels == ["orders"]
        assert exc_info.value.blocking[0].count == 1

    def test_run_returns_removed_count(self, shop: DatabaseAdapter) -> None:
        assert DependencyGuard(shop).run("users", 2, [ORDERS_OF_2]) == 1
        assert DependencyGuard(shop).run("users", 2, [ORDERS_OF_2]) == 0

    def test_check_lists_blocking_rules(self, shop: DatabaseAdapter) -> None:
        blocking = DependencyGuard(shop).check([ORDERS_OF_1, ORDERS_OF_2])
        assert [(b.table, b.count) for b in blocking] == [("orders", 1)]


class TestGuardWindow:
    """No write to a guarded table can slip in between the check and the delete."""

    def test_concurrent_insert_waits_for_guard(
        self, file_db: DatabaseAdapter, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        file_db.table("users").insert({"name": "Alice"})
        inserted = threading.Event()
        writers: list[threading.Thread] = []
        real_check = DependencyGuard.check

        def insert_order() -> None:
            file_db.table("orders").insert({"user_id": 1, "total": 5})
            inserted.set()

        def slow_check(self: DependencyGuard, guards: list[GuardRule]) -> list:
            writer = threading.Thread(target=insert_order)
            writers.append(writer)
            writer.start()
            assert not inserted.wait(0.3)
            return real_check(self, guards)

        monkeypatch.setattr(DependencyGuard, "check", slow_check)
        result = file_db.guard_delete("users", [ORDERS_OF_1], 1)

        assert result.success is True
        writers[0].join(timeout=5)
        assert inserted.is_set()
        assert file_db.table("users").count() == 0
        assert file_db.table("orders").where("user_id", "=", 1).count() == 1


class TestRelationalAtomicity:
    """The relational guard runs in one transaction."""

    def test_failed_cleanup_rolls_back(self, sqlite_db: DatabaseAdapter) -> None:
        sqlite_db.table("users").insert({"name": "Alice"})
        sqlite_db.table("sessions").insert({"user_id": 1, "token": "a"})
        cleanups = [
            SESSIONS_OF_1,
            CleanupRule(table="missing_table", where={"user_id": 1}),
        ]
        with pytest.raises(QueryError):
            sqlite_db.guard_delete("users", [], 1, cleanups)
        assert sqlite_db.table("sessions").count() == 1
        assert sqlite_db.table("users").count() == 1
