"""Shared fixtures for hoist unit tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from hoist_back.core.config import DatabaseConfig
from hoist_back.runtime.adapter import DatabaseAdapter
from hoist_back.runtime.db_backend import SQLiteBackend
from hoist_back.runtime.record_store import RecordStore

# Relational schema mirroring the JSON tables the tests create on the fly.
SCHEMA = (
    'CREATE TABLE "items" (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, '
    "score INTEGER, tags TEXT, meta TEXT, active INTEGER)",
    'CREATE TABLE "users" (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, '
    "email TEXT, password TEXT, deleted INTEGER, deleted_at TEXT)",
    'CREATE TABLE "orders" (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, total INTEGER)',
    'CREATE TABLE "order_items" (id INTEGER PRIMARY KEY AUTOINCREMENT, order_id INTEGER, sku TEXT)',
    'CREATE TABLE "sessions" (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, token TEXT)',
)


def create_schema(backend: SQLiteBackend) -> None:
    for statement in SCHEMA:
        backend.execute(statement)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "db"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir: Path) -> RecordStore:
    return RecordStore(data_dir)


@pytest.fixture
def file_db(data_dir: Path) -> DatabaseAdapter:
    """Adapter bound to the embedded JSON record store."""
    return DatabaseAdapter.from_config(DatabaseConfig(data_dir=data_dir))


@pytest.fixture
def sqlite_backend(tmp_path: Path) -> Iterator[SQLiteBackend]:
    backend = SQLiteBackend(tmp_path / "relational.db")
    backend.connect()
    create_schema(backend)
    yield backend
    backend.close()


@pytest.fixture
def sqlite_db(sqlite_backend: SQLiteBackend) -> DatabaseAdapter:
    """Adapter bound to a SQLite relational backend with the test schema."""
    return DatabaseAdapter(relational=sqlite_backend)


@pytest.fixture(params=["filedb", "sqlite"])
def db(request: pytest.FixtureRequest) -> DatabaseAdapter:
    """Run the test once per backend."""
    if request.param == "filedb":
        return request.getfixturevalue("file_db")
    return request.getfixturevalue("sqlite_db")


@pytest.fixture
def scored(db: DatabaseAdapter) -> DatabaseAdapter:
    """A, B, C inserted in that order with scores 10, 30, 20."""
    items = db.table("items")
    items.insert({"name": "A", "score": 10})
    items.insert({"name": "B", "score": 30})
    items.insert({"name": "C", "score": 20})
    return db
