"""
Backend adapter.

One query interface over whichever backend the process selected at startup:

    db = DatabaseAdapter.from_config(load_config())
    db.table("users").where("active", "=", True).all()

The relational backend is used only when its connection settings are
complete and a first connection succeeds; otherwise the embedded JSON record
store is used. The choice never changes afterwards: a relational backend
that drops later raises BackendUnavailable instead of falling back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from hoist_back.core.config import DatabaseConfig, load_config
from hoist_back.core.errors import BackendUnavailable
from hoist_back.runtime.db_backend import RelationalBackend, SQLiteBackend
from hoist_back.runtime.dependency_guard import guard_delete
from hoist_back.runtime.file_query import FileQuery
from hoist_back.runtime.logging import log_with_context
from hoist_back.runtime.query import Query
from hoist_back.runtime.record_store import RecordStore
from hoist_back.runtime.sql_query import SqlQuery
from hoist_back.specs.query import GuardDeleteResult, QuerySpec, validate_identifier

logger = logging.getLogger(__name__)

FILE_BACKEND = "filedb"


def build_relational_backend(config: DatabaseConfig) -> RelationalBackend:
    """Create (but do not connect) the relational backend a config describes."""
    if config.engine == "sqlite":
        path = config.url.removeprefix("sqlite:///") if config.url else config.dbname
        return SQLiteBackend(path, connect_timeout=config.connect_timeout)

    from hoist_back.runtime.pg_backend import PostgresBackend

    return PostgresBackend.from_config(config)


class DatabaseAdapter:
    """
    Entry point for data access.

    Exactly one of `store` (embedded backend) or `relational` (connected
    relational backend) is set.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        relational: RelationalBackend | None = None,
    ):
        if (store is None) == (relational is None):
            raise ValueError("DatabaseAdapter needs exactly one of store or relational")
        self.store = store
        self.relational = relational

    @classmethod
    def from_config(cls, config: DatabaseConfig | None = None) -> DatabaseAdapter:
        """
        Select the backend for this process.

        Args:
            config: Database settings (default: load_config())

        Returns:
            Adapter bound to the relational backend if it is fully configured
            and reachable, otherwise to the embedded record store
        """
        config = config or load_config()

        if config.is_relational_complete:
            backend = build_relational_backend(config)
            try:
                backend.connect()
            except BackendUnavailable as exc:
                log_with_context(
                    logger,
                    logging.WARNING,
                    "Relational backend unreachable, using embedded record store",
                    backend=backend.describe(),
                    error=exc.message,
                )
            else:
                logger.info(f"Using relational backend {backend.describe()}")
                return cls(relational=backend)

        logger.info(f"Using embedded record store at {config.data_dir}")
        return cls(store=RecordStore(config.data_dir))

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def backend_type(self) -> str:
        if self.relational is not None:
            return self.relational.backend_type
        return FILE_BACKEND

    @property
    def is_relational(self) -> bool:
        return self.relational is not None

    @property
    def is_file_database(self) -> bool:
        return self.store is not None

    def __repr__(self) -> str:
        target = self.relational.describe() if self.relational is not None else self.store.data_dir
        return f"DatabaseAdapter({self.backend_type}: {target})"

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def table(self, name: str) -> Query:
        """Start a query on `name`."""
        spec = QuerySpec(table=validate_identifier(name, "table name"))
        if self.relational is not None:
            return SqlQuery(self.relational, spec)
        assert self.store is not None
        return FileQuery(self.store, spec)

    @contextmanager
    def exclusive(self, *tables: str) -> Iterator[None]:
        """
        Run a multi-step operation as one critical section.

        Embedded store: holds the table locks of `tables`.
        Relational backend: runs in one transaction.
        """
        if self.relational is not None:
            with self.relational.transaction():
                yield
            return
        assert self.store is not None
        with self.store.locked(*tables):
            yield

    def guard_delete(
        self,
        table: str,
        guards: Iterable[Any] | None,
        record_id: Any,
        cleanups: Iterable[Any] | None = None,
    ) -> GuardDeleteResult:
        """Delete `table`#`record_id` unless a guard rule finds dependent records."""
        return guard_delete(self, table, guards, record_id, cleanups)

    def close(self) -> None:
        if self.relational is not None:
            self.relational.close()


def connect(config: DatabaseConfig | None = None, **overrides: Any) -> DatabaseAdapter:
    """Shortcut for DatabaseAdapter.from_config(load_config(**overrides))."""
    if config is None:
        config = load_config(**overrides)
    elif overrides:
        config = config.with_overrides(**overrides)
    return DatabaseAdapter.from_config(config)
