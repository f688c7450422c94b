"""
Query and guard rule type definitions.

This module exports the pydantic models shared by every backend.
"""

from hoist_back.specs.query import (
    CleanupRule,
    Direction,
    GuardDeleteResult,
    GuardRule,
    Operator,
    OrderSpec,
    Predicate,
    QuerySpec,
    coerce_predicates,
    validate_identifier,
)

__all__ = [
    "CleanupRule",
    "Direction",
    "GuardDeleteResult",
    "GuardRule",
    "Operator",
    "OrderSpec",
    "Predicate",
    "QuerySpec",
    "coerce_predicates",
    "validate_identifier",
]
