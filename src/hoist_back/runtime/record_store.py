"""
JSON file record store - persistence layer for the embedded backend.

Each table is one file, <data_dir>/<table>.json, holding a JSON array of
record objects. A missing file is an empty table. Writes replace the whole
file through a temporary file and an atomic rename, so readers never see a
partially written table.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from hoist_back.core.errors import StorageUnavailable
from hoist_back.runtime.table_lock import TableLocks
from hoist_back.runtime.values import Record
from hoist_back.specs.query import validate_identifier

logger = logging.getLogger(__name__)

TABLE_EXTENSION = ".json"


def allocate_id(records: list[Record]) -> int:
    """One more than the largest numeric id, or 1 for an empty table."""
    max_id = 0
    for record in records:
        raw = record.get("id")
        if isinstance(raw, bool):
            continue
        if isinstance(raw, int | float):
            max_id = max(max_id, int(raw))
        elif isinstance(raw, str) and raw.strip().lstrip("+-").isdigit():
            max_id = max(max_id, int(raw))
    return max_id + 1


class RecordStore:
    """
    Owns the table files of one database directory.

    Loads are never cached: every call reads the current file, so a persist
    is visible to the very next load.
    """

    def __init__(self, data_dir: str | Path):
        """
        Initialize the record store.

        Args:
            data_dir: Directory holding the <table>.json files
        """
        self.data_dir = Path(data_dir)
        if self.data_dir.exists() and not self.data_dir.is_dir():
            raise StorageUnavailable(f"Database path is not a directory: {self.data_dir}")
        self._locks = TableLocks(self.data_dir)

    def table_path(self, table: str) -> Path:
        """Return the backing file of a table."""
        name = validate_identifier(table, "table name")
        return self.data_dir / f"{name}{TABLE_EXTENSION}"

    def exists(self, table: str) -> bool:
        return self.table_path(table).exists()

    def load(self, table: str) -> list[Record]:
        """
        Load every record of a table.

        Args:
            table: Table name

        Returns:
            Records in on-disk order (empty if the file does not exist)

        Raises:
            StorageUnavailable: If the file exists but cannot be read or parsed
        """
        path = self.table_path(table)
        if not path.exists():
            return []
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageUnavailable(f"Failed to read table '{table}': {exc}", table=table) from exc
        if not content.strip():
            return []
        try:
            records = json.loads(content)
        except (json.JSONDecodeError, RecursionError) as exc:
            raise StorageUnavailable(f"Invalid JSON in table '{table}': {exc}", table=table) from exc
        if not isinstance(records, list):
            raise StorageUnavailable(
                f"Table '{table}' must contain an array of records, found: {type(records).__name__}",
                table=table,
            )
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise StorageUnavailable(
                    f"Table '{table}' record #{index} is not an object: {type(record).__name__}",
                    table=table,
                )
        logger.debug(f"Loaded {len(records)} records from {table}")
        return records

    def persist(self, table: str, records: list[Record]) -> None:
        """
        Replace a table's contents on disk.

        Args:
            table: Table name
            records: Full record sequence to write

        Raises:
            StorageUnavailable: If the data cannot be encoded or written
        """
        path = self.table_path(table)
        try:
            payload = json.dumps(records, indent=4, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageUnavailable(f"Failed to encode table '{table}': {exc}", table=table) from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
        except OSError as exc:
            raise StorageUnavailable(f"Failed to prepare write for table '{table}': {exc}", table=table) from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StorageUnavailable(f"Failed to write table '{table}': {exc}", table=table) from exc
        logger.debug(f"Persisted {len(records)} records to {table}")

    def next_id(self, table: str) -> int:
        """Compute the id the next insert into `table` would receive."""
        return allocate_id(self.load(table))

    @contextmanager
    def locked(self, *tables: str) -> Iterator[None]:
        """Hold the exclusive mutation lock of the given tables."""
        names = [validate_identifier(t, "table name") for t in tables]
        with self._locks.locked(*names):
            yield

    @contextmanager
    def mutate(self, table: str) -> Iterator[TableMutation]:
        """
        Run one locked load-modify-persist cycle on a table.

        Usage:
            with store.mutate("users") as mutation:
                mutation.records.append({...})
                mutation.changed = True

        The table is written back only on a clean exit with `changed` set.
        """
        with self.locked(table):
            mutation = TableMutation(table=table, records=self.load(table))
            yield mutation
            if mutation.changed:
                self.persist(table, mutation.records)


@dataclass
class TableMutation:
    """Records of one table loaded under its exclusive lock."""

    table: str
    records: list[Record]
    changed: bool = False
