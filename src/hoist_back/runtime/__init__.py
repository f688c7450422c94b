"""
Hoist runtime

Storage engines and the query layer on top of them:
- RecordStore: JSON table files with per-table locking
- FileQuery / SqlQuery: the fluent query builder per backend
- SQLiteBackend / PostgresBackend: relational connections
- DatabaseAdapter: picks a backend once per process

Example usage:
    >>> from hoist_back.runtime import DatabaseAdapter
    >>> db = DatabaseAdapter.from_config()
    >>> db.table("users").where("age", ">", 18).order("name").all(limit=10)
"""

from hoist_back.runtime.adapter import DatabaseAdapter, connect
from hoist_back.runtime.db_backend import RelationalBackend, SQLiteBackend
from hoist_back.runtime.dependency_guard import DependencyGuard, guard_delete
from hoist_back.runtime.file_query import FileQuery
from hoist_back.runtime.model import Model
from hoist_back.runtime.query import Query
from hoist_back.runtime.record_store import RecordStore
from hoist_back.runtime.sql_query import SqlQuery

__all__ = [
    "DatabaseAdapter",
    "DependencyGuard",
    "FileQuery",
    "Model",
    "Query",
    "RecordStore",
    "RelationalBackend",
    "SQLiteBackend",
    "SqlQuery",
    "connect",
    "guard_delete",
]
