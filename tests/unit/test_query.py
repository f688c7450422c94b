"""Tests for the fluent query builder, run against every backend."""

from __future__ import annotations

import pytest

from hoist_back.core.errors import InvalidQuery
from hoist_back.runtime.adapter import DatabaseAdapter


def names(rows: list[dict]) -> list[str]:
    return [row["name"] for row in rows]


class TestScenarios:
    """A(10), B(30), C(20) inserted in that order."""

    def test_order_desc(self, scored: DatabaseAdapter) -> None:
        rows = scored.table("items").order("score", "DESC").all()
        assert names(rows) == ["B", "C", "A"]

    def test_where_keeps_insertion_order(self, scored: DatabaseAdapter) -> None:
        rows = scored.table("items").where("score", ">", 15).all()
        assert names(rows) == ["B", "C"]

    def test_get_missing_id_returns_none(self, scored: DatabaseAdapter) -> None:
        assert scored.table("items").where("id", "=", 999).get() is None

    def test_order_asc_lowercase_direction(self, scored: DatabaseAdapter) -> None:
        rows = scored.table("items").order("score", "asc").all()
        assert names(rows) == ["A", "C", "B"]


class TestReads:
    """Tests for terminal read operations."""

    def test_round_trip_by_id(self, db: DatabaseAdapter) -> None:
        items = db.table("items")
        new_id = items.insert({"name": "A", "score": 10})
        row = items.where("id", "=", new_id).get()
        assert row is not None
        assert row["id"] == new_id
        assert row["name"] == "A"
        assert row["score"] == 10

    def test_first_and_last_follow_requested_order(self, scored: DatabaseAdapter) -> None:
        by_score = scored.table("items").order("score", "ASC")
        assert by_score.first()["name"] == "A"
        assert by_score.last()["name"] == "B"
        assert by_score.last_of_ordered()["name"] == "B"

    def test_last_without_order_is_last_inserted(self, scored: DatabaseAdapter) -> None:
        assert scored.table("items").last()["name"] == "C"

    def test_first_on_empty_table(self, db: DatabaseAdapter) -> None:
        assert db.table("items").first() is None
        assert db.table("items").last() is None
        assert db.table("items").all() == []

    @pytest.mark.parametrize("limit,expected", [(2, 2), ("2", 2), (0, 3), (-1, 3), (None, 3), ("x", 3)])
    def test_limit(self, scored: DatabaseAdapter, limit: object, expected: int) -> None:
        assert len(scored.table("items").all(limit)) == expected

    def test_limit_applies_after_order(self, scored: DatabaseAdapter) -> None:
        rows = scored.table("items").order("score", "DESC").all(limit=2)
        assert names(rows) == ["B", "C"]

    def test_count_and_exists(self, scored: DatabaseAdapter) -> None:
        items = scored.table("items")
        assert items.count() == 3
        assert items.where("score", ">=", 20).count() == 2
        assert items.where("name", "=", "B").exists() is True
        assert items.where("name", "=", "Z").exists() is False

    def test_predicates_are_anded(self, scored: DatabaseAdapter) -> None:
        rows = scored.table("items").where("score", ">", 10).where("score", "<", 30).all()
        assert names(rows) == ["C"]

    def test_not_equal_operator_aliases(self, scored: DatabaseAdapter) -> None:
        assert names(scored.table("items").where("name", "<>", "B").all()) == ["A", "C"]
        assert names(scored.table("items").where("name", "!=", "B").all()) == ["A", "C"]

    def test_contains_is_literal(self, db: DatabaseAdapter) -> None:
        items = db.table("items")
        items.insert({"name": "50% off"})
        items.insert({"name": "500 off"})
        items.insert({"name": "Half off"})
        assert names(items.where("name", "LIKE", "%").all()) == ["50% off"]
        assert names(items.where("name", "like", "off").all()) == ["50% off", "500 off", "Half off"]
        assert names(items.where("name", "LIKE", "half").all()) == []

    def test_contains_with_non_string_value(self, db: DatabaseAdapter) -> None:
        items = db.table("items")
        items.insert({"name": "on", "active": True})
        items.insert({"name": "off", "active": False})
        assert names(items.where("active", "LIKE", True).all()) == ["on"]
        assert names(items.where("score", "LIKE", 1).all()) == []

    def test_null_comparisons(self, db: DatabaseAdapter) -> None:
        items = db.table("items")
        items.insert({"name": "A", "score": 10})
        items.insert({"name": "N", "score": None})
        assert names(items.where("score", "=", None).all()) == ["N"]
        assert names(items.where("score", "!=", None).all()) == ["A"]
        assert names(items.where("score", "!=", 10).all()) == ["N"]
        assert items.where("score", "<", 100).count() == 1

    def test_nulls_sort_first_ascending(self, db: DatabaseAdapter) -> None:
        items = db.table("items")
        items.insert({"name": "A", "score": 10})
        items.insert({"name": "N", "score": None})
        assert names(items.order("score").all()) == ["N", "A"]
        assert names(items.order("score", "DESC").all()) == ["A", "N"]


class TestOrdering:
    """Tests for ordering semantics."""

    def test_ties_keep_insertion_order(self, db: DatabaseAdapter) -> None:
        items = db.table("items")
        for name in ("X", "Y", "Z"):
            items.insert({"name": name, "score": 5})
        items.insert({"name": "W", "score": 1})
        assert names(items.order("score", "DESC").all()) == ["X", "Y", "Z", "W"]
        assert names(items.order("score", "ASC").all()) == ["W", "X", "Y", "Z"]

    def test_later_order_replaces_earlier(self, scored: DatabaseAdapter) -> None:
        rows = scored.table("items").order("score", "DESC").order("name", "ASC").all()
        assert names(rows) == ["A", "B", "C"]

    def test_order_by_id_desc(self, scored: DatabaseAdapter) -> None:
        assert names(scored.table("items").order("id", "DESC").all()) == ["C", "B", "A"]

    def test_invalid_direction(self, db: DatabaseAdapter) -> None:
        with pytest.raises(InvalidQuery):
            db.table("items").order("score", "UP")


class TestBuilderState:
    """Tests for query reuse."""

    def test_builders_return_new_queries(self, scored: DatabaseAdapter) -> None:
        base = scored.table("items").where("score", ">", 15)
        ordered = base.order("score", "DESC")
        narrowed = base.where("name", "=", "C")
        assert names(base.all()) == ["B", "C"]
        assert names(ordered.all()) == ["B", "C"]
        assert names(narrowed.all()) == ["C"]
        assert base.spec.order is None

    def test_terminals_do_not_reset_state(self, scored: DatabaseAdapter) -> None:
        query = scored.table("items").where("score", ">", 15)
        assert query.count() == 2
        assert query.count() == 2
        assert names(query.all()) == ["B", "C"]

    def test_terminals_reread_storage(self, scored: DatabaseAdapter) -> None:
        query = scored.table("items").where("score", ">", 15)
        scored.table("items").insert({"name": "D", "score": 40})
        assert names(query.all()) == ["B", "C", "D"]

    def test_table_switches_table(self, scored: DatabaseAdapter) -> None:
        query = scored.table("items").where("score", ">", 15).table("orders")
        assert query.table_name == "orders"
        assert query.spec.predicates == ()

    @pytest.mark.parametrize("name", ["", "  ", "bad-name", "1abc", "a.b", "../x"])
    def test_invalid_table_name(self, db: DatabaseAdapter, name: str) -> None:
        with pytest.raises(InvalidQuery):
            db.table(name)

    def test_invalid_operator(self, db: DatabaseAdapter) -> None:
        with pytest.raises(InvalidQuery, match="Supported operators"):
            db.table("items").where("score", "BETWEEN", 1)
