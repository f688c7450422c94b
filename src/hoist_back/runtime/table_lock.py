"""
Per-table exclusive locks for the embedded record store.

Every load-modify-persist cycle runs inside one critical section made of:
- an in-process re-entrant lock keyed by (directory, table), serializing threads
- an advisory OS lock on <directory>/.<table>.lock, serializing processes

Re-entrant acquisition by the owning thread only bumps a depth counter, so a
guarded delete can hold a table while the nested delete locks it again.

- Unix/Linux/macOS: fcntl.flock
- Windows: msvcrt.locking
"""

from __future__ import annotations

import logging
import platform
import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)


class _TableLock:
    """Re-entrant lock for one table file."""

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        self._rlock = threading.RLock()
        self._depth = 0
        self._handle: IO[str] | None = None

    def acquire(self) -> None:
        self._rlock.acquire()
        try:
            if self._depth == 0:
                self.lock_path.parent.mkdir(parents=True, exist_ok=True)
                handle = open(self.lock_path, "a+", encoding="utf-8")
                try:
                    _lock_file(handle)
                except BaseException:
                    handle.close()
                    raise
                self._handle = handle
                logger.debug(f"Acquired lock on {self.lock_path}")
            self._depth += 1
        except BaseException:
            self._rlock.release()
            raise

    def release(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0 and self._handle is not None:
                handle, self._handle = self._handle, None
                try:
                    _unlock_file(handle)
                finally:
                    handle.close()
                logger.debug(f"Released lock on {self.lock_path}")
        finally:
            self._rlock.release()


class TableLocks:
    """Registry of table locks for one database directory."""

    _registry: dict[Path, _TableLock] = {}
    _registry_lock = threading.Lock()

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _lock_for(self, table: str) -> _TableLock:
        path = (self.directory / f".{table}.lock").resolve()
        # Shared across TableLocks instances so two stores on one directory exclude each other.
        with TableLocks._registry_lock:
            lock = TableLocks._registry.get(path)
            if lock is None:
                lock = _TableLock(path)
                TableLocks._registry[path] = lock
            return lock

    @contextmanager
    def locked(self, *tables: str) -> Iterator[None]:
        """
        Hold the exclusive lock of every named table.

        Locks are taken in sorted name order so concurrent multi-table
        callers cannot deadlock.
        """
        with ExitStack() as stack:
            for table in sorted(set(tables)):
                lock = self._lock_for(table)
                lock.acquire()
                stack.callback(lock.release)
            yield


# ============================================
# OS-level advisory locks
# ============================================


def _lock_file(handle: IO[str]) -> None:
    if platform.system() == "Windows":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)  # type: ignore[attr-defined]
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(handle: IO[str]) -> None:
    if platform.system() == "Windows":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
