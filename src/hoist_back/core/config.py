"""
Database configuration for Hoist applications.

Resolution order for every setting:
    explicit argument → environment variable → hoist.toml [database] → default

hoist.toml example:

    [database]
    data_dir = "Application/Database/app"   # embedded JSON tables
    host = "localhost"                      # relational backend (optional)
    user = "hoist"
    password = ""
    dbname = "hoist"
    port = 5432
    connect_timeout = 5
    # url = "postgresql://hoist@localhost/hoist"   # alternative to host/user/dbname
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "hoist.toml"
DEFAULT_DATA_DIR = "Application/Database/app"
DEFAULT_PG_PORT = 5432
DEFAULT_CONNECT_TIMEOUT = 5

_ENGINES = ("postgres", "sqlite")


def normalize_database_url(url: str) -> str:
    """Normalize Heroku's postgres:// scheme to postgresql://."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the embedded store and the relational backend.

    Attributes:
        data_dir: Directory holding one <table>.json file per table
        host: Relational server host
        user: Relational user name
        password: Relational password (may be empty)
        dbname: Relational database name
        port: Relational server port
        url: Full connection URL, used instead of host/user/dbname when set
        engine: Relational engine, "postgres" or "sqlite"
        connect_timeout: Seconds to wait for the relational connection
    """

    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR))
    host: str = ""
    user: str = ""
    password: str = ""
    dbname: str = ""
    port: int = DEFAULT_PG_PORT
    url: str = ""
    engine: str = "postgres"
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT

    def __post_init__(self) -> None:
        if self.engine not in _ENGINES:
            raise ValueError(f"Unknown database engine '{self.engine}'. Use one of: {', '.join(_ENGINES)}")
        if self.url:
            object.__setattr__(self, "url", normalize_database_url(self.url))
        object.__setattr__(self, "data_dir", Path(self.data_dir))

    @property
    def is_relational_complete(self) -> bool:
        """True when enough is configured to attempt a relational connection."""
        if self.url:
            return True
        if self.engine == "sqlite":
            return bool(self.dbname)
        return bool(self.host and self.user and self.dbname)

    def conninfo(self) -> str:
        """Build a libpq connection string (PostgreSQL only)."""
        if self.url:
            return self.url
        parts = [
            f"host={self.host}",
            f"port={self.port}",
            f"dbname={self.dbname}",
            f"user={self.user}",
        ]
        if self.password:
            parts.append(f"password={self.password}")
        return " ".join(parts)

    def with_overrides(self, **overrides: Any) -> DatabaseConfig:
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer in {name}={raw!r}, using {default}")
        return default


def load_manifest_section(manifest_path: Path) -> dict[str, Any]:
    """Read the [database] table of a hoist.toml manifest.

    Returns an empty dict when the manifest does not exist.
    """
    if not manifest_path.exists():
        return {}
    with open(manifest_path, "rb") as f:
        data = tomllib.load(f)
    section = data.get("database", {})
    if not isinstance(section, dict):
        raise ValueError(f"[database] in {manifest_path} must be a table")
    return section


def load_config(
    project_root: Path | str | None = None,
    **overrides: Any,
) -> DatabaseConfig:
    """
    Resolve the database configuration for a project.

    Args:
        project_root: Directory containing hoist.toml (default: HOIST_PROJECT_ROOT or cwd)
        **overrides: Explicit DatabaseConfig field values (highest precedence)

    Returns:
        DatabaseConfig with every source merged
    """
    root = Path(project_root or os.environ.get("HOIST_PROJECT_ROOT", ".")).resolve()
    manifest = load_manifest_section(root / MANIFEST_FILENAME)

    def _pick(env_name: str, key: str, default: Any) -> Any:
        env_value = os.environ.get(env_name)
        if env_value:
            return env_value
        return manifest.get(key, default)

    data_dir = Path(_pick("HOIST_DATA_DIR", "data_dir", DEFAULT_DATA_DIR))
    if not data_dir.is_absolute():
        data_dir = root / data_dir

    port = _env_int("DB_PORT", int(manifest.get("port", DEFAULT_PG_PORT)))
    timeout = _env_int(
        "HOIST_DB_CONNECT_TIMEOUT", int(manifest.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT))
    )

    config = DatabaseConfig(
        data_dir=data_dir,
        host=_pick("DB_HOST", "host", ""),
        user=_pick("DB_USER", "user", ""),
        # Presence, not truthiness: an empty password is valid.
        password=os.environ.get("DB_PASSWORD", manifest.get("password", "")),
        dbname=_pick("DB_NAME", "dbname", ""),
        port=port,
        url=_pick("DATABASE_URL", "url", ""),
        engine=_pick("HOIST_DB_ENGINE", "engine", "postgres"),
        connect_timeout=timeout,
    )
    return config.with_overrides(**overrides)
