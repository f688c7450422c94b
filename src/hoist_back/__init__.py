"""
Hoist - data access layer

One query interface over a directory of JSON tables or a relational
database (PostgreSQL, SQLite).

This package provides:
- DatabaseAdapter: Backend selection and the fluent query entry point
- Model: Table-bound base class with hidden fields and soft deletes
- Guarded deletes: dependency checks before removing a record
"""

from hoist_back._version import get_version as _get_version

__version__ = _get_version()

from hoist_back.core.config import DatabaseConfig, load_config
from hoist_back.core.errors import (
    BackendUnavailable,
    GuardBlocked,
    HoistDataError,
    InvalidQuery,
    InvalidRecord,
    MissingFilter,
    QueryError,
    StorageUnavailable,
)
from hoist_back.runtime.adapter import DatabaseAdapter, connect
from hoist_back.runtime.model import Model
from hoist_back.specs.query import CleanupRule, GuardDeleteResult, GuardRule

__all__ = [
    "BackendUnavailable",
    "CleanupRule",
    "DatabaseAdapter",
    "DatabaseConfig",
    "GuardBlocked",
    "GuardDeleteResult",
    "GuardRule",
    "HoistDataError",
    "InvalidQuery",
    "InvalidRecord",
    "MissingFilter",
    "Model",
    "QueryError",
    "StorageUnavailable",
    "connect",
    "load_config",
]
