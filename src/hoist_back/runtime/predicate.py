"""
Predicate evaluator for the embedded record store.

Evaluates one (field, operator, value) predicate against one record:
- Numeric comparison when both sides parse as numbers
- Lexical text comparison otherwise
- A missing field reads as null for = and !=, and fails every other operator
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from hoist_back.runtime.values import Record, as_number, to_text
from hoist_back.specs.query import Operator, Predicate

_MISSING = object()


def evaluate(record: Record, predicate: Predicate) -> bool:
    """
    Evaluate a predicate against a record.

    Args:
        record: Record data
        predicate: Condition to test

    Returns:
        True if the record satisfies the condition
    """
    record_value = record.get(predicate.field, _MISSING)
    return compare(record_value, predicate.operator, predicate.value)


def matches(record: Record, predicates: Iterable[Predicate]) -> bool:
    """AND every predicate together; each one is evaluated even after a failure."""
    results = [evaluate(record, p) for p in predicates]
    return all(results)


def filter_records(records: Iterable[Record], predicates: tuple[Predicate, ...]) -> list[Record]:
    """Return the records satisfying every predicate, in their original order."""
    if not predicates:
        return list(records)
    return [r for r in records if matches(r, predicates)]


def compare(record_value: Any, operator: Operator, test_value: Any) -> bool:
    """
    Perform one comparison.

    Args:
        record_value: Value read from the record, or _MISSING
        operator: Comparison operator
        test_value: Value supplied to where()

    Returns:
        True if the comparison passes
    """
    if record_value is _MISSING:
        if operator == Operator.EQ:
            return test_value is None
        if operator == Operator.NE:
            return test_value is not None
        return False

    # Null comparisons
    if record_value is None or test_value is None:
        if operator == Operator.EQ:
            return record_value is None and test_value is None
        if operator == Operator.NE:
            return not (record_value is None and test_value is None)
        return False

    if operator == Operator.CONTAINS:
        return to_text(test_value) in to_text(record_value)

    left_num = as_number(record_value)
    right_num = as_number(test_value)
    if left_num is not None and right_num is not None:
        return _apply(operator, left_num, right_num)
    return _apply(operator, to_text(record_value), to_text(test_value))


def _apply(operator: Operator, left: Any, right: Any) -> bool:
    if operator == Operator.EQ:
        return bool(left == right)
    if operator == Operator.NE:
        return bool(left != right)
    if operator == Operator.LT:
        return bool(left < right)
    if operator == Operator.GT:
        return bool(left > right)
    if operator == Operator.LTE:
        return bool(left <= right)
    if operator == Operator.GTE:
        return bool(left >= right)
    raise ValueError(f"Unsupported operator: {operator}")


def sort_key(record: Record, field: str) -> tuple[Any, ...]:
    """
    Total ordering key for one field.

    Nulls (and missing fields) sort first, then numbers by value, then
    everything else by text.
    """
    value = record.get(field)
    if value is None:
        return (0,)
    number = as_number(value)
    if number is not None:
        return (1, number)
    return (2, to_text(value))
