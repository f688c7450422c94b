"""
Relational database backends.

A relational backend owns one persistent connection for the process
lifetime and exposes the handful of primitives the SQL query builder needs:
fetch rows, execute a statement, insert returning the generated id, and run
a transaction. Driver exceptions are translated at this boundary:

    connection-level failures → BackendUnavailable
    any other driver error    → QueryError

SQLiteBackend lives here (standard library driver); PostgresBackend lives
in pg_backend.py.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from hoist_back.core.errors import BackendUnavailable, QueryError
from hoist_back.specs.query import validate_identifier

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Validate and double-quote a table or column name."""
    return f'"{validate_identifier(name)}"'


class RelationalBackend(ABC):
    """
    Base class for relational backends.

    Statements outside transaction() commit immediately; inside it they
    commit together when the outermost transaction() block exits cleanly.
    """

    backend_type: str = "relational"
    placeholder: str = "?"

    # Driver exception classes, set by subclasses
    _unavailable_errors: tuple[type[BaseException], ...] = ()
    _driver_errors: tuple[type[BaseException], ...] = ()

    def __init__(self) -> None:
        self._connection: Any = None
        self._lock = threading.RLock()
        self._tx_depth = 0

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    def _open(self) -> Any:
        """Open a new driver connection in autocommit mode."""

    @abstractmethod
    def _is_closed(self, conn: Any) -> bool:
        """Whether the driver connection can no longer be used."""

    def connect(self) -> RelationalBackend:
        """
        Establish the persistent connection.

        Raises:
            BackendUnavailable: If the connection attempt fails
        """
        with self._lock:
            if self._connection is not None and not self._is_closed(self._connection):
                return self
            try:
                self._connection = self._open()
            except (*self._driver_errors, OSError) as exc:
                raise BackendUnavailable(f"Could not connect to {self.describe()}: {exc}") from exc
            logger.info(f"Connected to {self.describe()}")
            return self

    def close(self) -> None:
        """Close the persistent connection."""
        with self._lock:
            if self._connection is not None and not self._is_closed(self._connection):
                self._connection.close()
            self._connection = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._is_closed(self._connection)

    def describe(self) -> str:
        return self.backend_type

    def _require_connection(self) -> Any:
        if self._connection is None or self._is_closed(self._connection):
            raise BackendUnavailable(f"{self.describe()} is not connected")
        return self._connection

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        """Yield a cursor, translating driver errors."""
        with self._lock:
            conn = self._require_connection()
            try:
                cursor = conn.cursor()
                try:
                    yield cursor
                finally:
                    cursor.close()
            except self._unavailable_errors as exc:
                raise BackendUnavailable(f"{self.describe()} became unavailable: {exc}") from exc
            except self._driver_errors as exc:
                raise QueryError(f"{self.describe()} rejected statement: {exc}") from exc

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute a query and return rows as dicts."""
        with self._cursor() as cursor:
            cursor.execute(sql, tuple(params))
            return [dict(row) for row in cursor.fetchall()]

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Execute a query and return the first column of the first row."""
        rows = self.fetch_all(sql, params)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute a modification statement and return its rowcount."""
        with self._cursor() as cursor:
            cursor.execute(sql, tuple(params))
            rowcount: int = cursor.rowcount
            return rowcount

    def insert(self, table: str, row: dict[str, Any]) -> int:
        """Insert one row and return the generated id."""
        columns = ", ".join(quote_identifier(k) for k in row)
        placeholders = ", ".join(self.placeholder for _ in row)
        sql = f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders})"
        return self._insert_returning_id(sql, list(row.values()))

    @abstractmethod
    def _insert_returning_id(self, sql: str, params: list[Any]) -> int:
        """Run an INSERT and return the id the database assigned."""

    @abstractmethod
    def contains_sql(self, column: str) -> str:
        """SQL fragment testing literal, case-sensitive containment of a parameter."""

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    def _begin(self, conn: Any) -> None: ...

    @abstractmethod
    def _commit(self, conn: Any) -> None: ...

    @abstractmethod
    def _rollback(self, conn: Any) -> None: ...

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run the enclosed statements as one transaction.

        Nested blocks join the outermost transaction.
        """
        with self._lock:
            if self._tx_depth > 0:
                self._tx_depth += 1
                try:
                    yield
                finally:
                    self._tx_depth -= 1
                return

            conn = self._require_connection()
            try:
                self._begin(conn)
            except self._driver_errors as exc:
                raise BackendUnavailable(f"Could not start transaction: {exc}") from exc
            self._tx_depth = 1
            try:
                yield
            except BaseException:
                self._tx_depth = 0
                try:
                    self._rollback(conn)
                except self._driver_errors as exc:
                    logger.warning(f"Rollback failed on {self.describe()}: {exc}")
                raise
            self._tx_depth = 0
            try:
                self._commit(conn)
            except self._driver_errors as exc:
                raise QueryError(f"Transaction commit failed: {exc}") from exc

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0


class SQLiteBackend(RelationalBackend):
    """
    SQLite relational backend.

    Zero-dependency relational engine for local development and tests. The
    schema is expected to exist already; tables are not created on demand.
    """

    backend_type = "sqlite"
    placeholder = "?"
    _unavailable_errors = ()
    _driver_errors = (sqlite3.Error,)

    def __init__(self, db_path: str | Path, connect_timeout: float = 5):
        """
        Initialize the SQLite backend.

        Args:
            db_path: Path to the database file, or ":memory:"
            connect_timeout: Seconds to wait on a locked database
        """
        super().__init__()
        self.db_path = str(db_path)
        self.connect_timeout = connect_timeout

    def describe(self) -> str:
        return f"sqlite:{self.db_path}"

    def _open(self) -> sqlite3.Connection:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.connect_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _is_closed(self, conn: Any) -> bool:
        # sqlite3 has no public "closed" flag; close() always goes through us.
        return False

    def _insert_returning_id(self, sql: str, params: list[Any]) -> int:
        with self._cursor() as cursor:
            cursor.execute(sql, tuple(params))
            return int(cursor.lastrowid)

    def contains_sql(self, column: str) -> str:
        return f"instr(CAST({column} AS TEXT), ?) > 0"

    def _begin(self, conn: Any) -> None:
        conn.execute("BEGIN IMMEDIATE")

    def _commit(self, conn: Any) -> None:
        conn.execute("COMMIT")

    def _rollback(self, conn: Any) -> None:
        conn.execute("ROLLBACK")
