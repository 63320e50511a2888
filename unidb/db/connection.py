"""Database facade — one API over SQLite (default) and PostgreSQL."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

from unidb.config import AppConfig, DatabaseSettings
from unidb.db.backend import Backend, RunResult
from unidb.db.errors import DatabaseError
from unidb.db.selector import Dialect, plan_connection

logger = logging.getLogger(__name__)


def _params(params: Any) -> tuple[Any, ...]:
    """Positional parameters; anything that is not a list/tuple means none."""
    if isinstance(params, (list, tuple)):
        return tuple(params)
    return ()


class Database:
    """Dialect-blind access to the active backend.

    Statements use ``?`` placeholders and plain ``BEGIN``/``COMMIT``/
    ``ROLLBACK`` brackets on every backend. The backend is chosen once, in
    ``create_db``, and never changes afterwards.
    """

    def __init__(self, backend: Backend):
        self._backend = backend
        self._closed = False

    @property
    def dialect(self) -> Dialect:
        return self._backend.dialect

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseError("Database is closed")

    async def execute(self, sql: str) -> None:
        """Run a statement or script with no parameters."""
        self._check_open()
        await self._backend.execute(sql)

    async def run(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        """Run a write statement; INSERTs report the generated id."""
        self._check_open()
        return await self._backend.run(sql, _params(params))

    async def get(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Return the first matching row as a dict, or None."""
        self._check_open()
        return await self._backend.get(sql, _params(params))

    async def all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Return every matching row as a list of dicts."""
        self._check_open()
        return await self._backend.all(sql, _params(params))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """``BEGIN`` on entry, ``COMMIT`` on success, ``ROLLBACK`` on error."""
        await self.execute("BEGIN")
        try:
            yield self
        except BaseException:
            try:
                await self.execute("ROLLBACK")
            except Exception:
                logger.warning("Rollback after failed transaction block failed", exc_info=True)
            raise
        await self.execute("COMMIT")

    async def close(self) -> None:
        """Roll back any open transaction and release the backend."""
        if self._closed:
            return
        self._closed = True
        await self._backend.close()

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


async def create_db(settings: DatabaseSettings | None = None) -> Database:
    """Select the backend from ``settings`` (default: environment) and open it."""
    if settings is None:
        settings = DatabaseSettings()
    plan = plan_connection(settings)

    if plan.dialect is Dialect.SQLITE:
        from unidb.db.sqlite_backend import SQLiteBackend

        backend: Backend = await SQLiteBackend.open(plan.sqlite_path)
    else:
        from unidb.db.postgres_backend import PostgresBackend

        backend = await PostgresBackend.open(plan)

    logger.info("Database ready (dialect=%s)", plan.dialect.value)
    return Database(backend)


# Module-level singleton
_db: Database | None = None


def get_db() -> Database:
    """Get the global database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _db


async def init_db(config: AppConfig | None = None) -> Database:
    """Initialize the global database instance."""
    global _db
    if config is None:
        config = AppConfig.from_yaml()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _db = await create_db(config.database)
    return _db


async def close_db() -> None:
    """Close and forget the global database instance."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
