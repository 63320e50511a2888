"""Backend selection: which engine is active and how to reach it.

Priority: an explicit ``DB_DIALECT`` override, then the presence of
``DATABASE_URL``/``PGHOST`` (PostgreSQL), then SQLite. Nothing here opens a
connection.
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from ssl import SSLContext
from urllib.parse import parse_qs, urlsplit

from unidb.config import REPO_ROOT, DatabaseSettings
from unidb.db.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Dialect(str, Enum):
    SQLITE = "sqlite"
    POSTGRES = "postgres"


_DIALECT_ALIASES = {
    "postgres": Dialect.POSTGRES,
    "postgresql": Dialect.POSTGRES,
    "pg": Dialect.POSTGRES,
    "sqlite": Dialect.SQLITE,
    "sqlite3": Dialect.SQLITE,
}

_SSL_MODES = {"require", "verify-full", "verify-ca"}

# Railway/Render-style deploys mount a persistent disk here.
DEFAULT_MOUNT = Path("/data")


@dataclass(frozen=True)
class ConnectionPlan:
    """Everything needed to open the selected backend."""

    dialect: Dialect
    sqlite_path: Path | None = None
    dsn: str | None = None
    ssl: SSLContext | None = None
    pool_max: int = 10
    idle_timeout: float = 30.0

    def describe(self) -> str:
        """Human-readable target without credentials."""
        if self.dialect is Dialect.SQLITE:
            return str(self.sqlite_path)
        if not self.dsn:
            return "postgres (PG* environment)"
        parts = urlsplit(self.dsn)
        return f"postgres://{parts.hostname or ''}{parts.path}"


def resolve_dialect(settings: DatabaseSettings) -> Dialect:
    explicit = _DIALECT_ALIASES.get(settings.dialect.strip().lower())
    if explicit is not None:
        return explicit
    if settings.database_url or settings.pghost:
        return Dialect.POSTGRES
    return Dialect.SQLITE


def sqlite_path(settings: DatabaseSettings, mount: Path = DEFAULT_MOUNT) -> Path:
    """Storage file: ``DB_DIR``, else the mount if present, else the repo root."""
    if settings.sqlite_dir is not None:
        directory = settings.sqlite_dir
    elif mount.exists():
        directory = mount
    else:
        directory = REPO_ROOT
    return directory / settings.sqlite_file


def _sslmode_from_url(connection_string: str) -> str:
    try:
        query = parse_qs(urlsplit(connection_string).query)
    except ValueError:
        return ""
    return (query.get("sslmode") or [""])[0].lower()


def should_use_ssl(settings: DatabaseSettings) -> bool:
    if settings.ssl:
        return True
    if settings.sslmode.strip().lower() == "require":
        return True
    if not settings.database_url:
        return False
    return _sslmode_from_url(settings.database_url) in _SSL_MODES


def ssl_context(settings: DatabaseSettings) -> SSLContext | None:
    """SSL context for the pool, or None when SSL is not requested.

    Certificate checks are only relaxed on explicit opt-in
    (``DB_SSL_ALLOW_UNVERIFIED``), for managed hosts with self-signed chains.
    """
    if not should_use_ssl(settings):
        return None
    context = ssl.create_default_context()
    if settings.ssl_allow_unverified:
        logger.warning("PostgreSQL SSL certificate verification is disabled")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def plan_connection(settings: DatabaseSettings, mount: Path = DEFAULT_MOUNT) -> ConnectionPlan:
    """Resolve the active backend and its connection parameters."""
    dialect = resolve_dialect(settings)
    if dialect is Dialect.SQLITE:
        return ConnectionPlan(dialect=dialect, sqlite_path=sqlite_path(settings, mount))

    if not settings.database_url and not settings.pghost:
        raise ConfigurationError(
            "PostgreSQL selected but neither DATABASE_URL nor PGHOST is set"
        )
    return ConnectionPlan(
        dialect=dialect,
        dsn=settings.database_url or None,
        ssl=ssl_context(settings),
        pool_max=settings.pool_max,
        idle_timeout=settings.pool_idle_timeout_ms / 1000,
    )
