"""Shared fixtures: isolated settings and an in-memory stand-in for asyncpg."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from unidb.config import DatabaseSettings

_ENV_VARS = (
    "DB_DIALECT",
    "DATABASE_URL",
    "PGHOST",
    "DB_DIR",
    "DB_FILE",
    "DB_SSL",
    "PGSSLMODE",
    "DB_SSL_ALLOW_UNVERIFIED",
    "PGPOOL_MAX",
    "PGPOOL_IDLE_TIMEOUT_MS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell environment out of every test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings():
    """Build DatabaseSettings without reading a local .env file."""

    def factory(**values: Any) -> DatabaseSettings:
        return DatabaseSettings(_env_file=None, **values)

    return factory


# ── asyncpg fakes ────────────────────────────────────────────────────────────


class FakeConnection:
    """Records statements; answers like an asyncpg connection."""

    def __init__(self, pool: FakePool, name: str):
        self.pool = pool
        self.name = name
        self.statements: list[tuple[str, tuple[Any, ...]]] = []

    def __repr__(self) -> str:
        return f"<FakeConnection {self.name}>"

    async def _record(self, query: str, args: tuple[Any, ...]) -> None:
        # Yield so concurrent tasks interleave like real I/O.
        await asyncio.sleep(0)
        self.statements.append((query, args))
        if query in self.pool.fail_once:
            self.pool.fail_once.discard(query)
            raise RuntimeError(f"{query} failed")

    async def execute(self, query: str, *args: Any) -> str:
        await self._record(query, args)
        head = query.lstrip().upper()
        if head.startswith("INSERT"):
            return "INSERT 0 1"
        if head.startswith(("UPDATE", "DELETE")):
            verb = head.split(None, 1)[0]
            return f"{verb} {self.pool.affected}"
        return head.split(None, 1)[0] if head else ""

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        await self._record(query, args)
        if query.rstrip().endswith("RETURNING id"):
            self.pool.last_id += 1
            return [{"id": self.pool.last_id}]
        return [dict(row) for row in self.pool.rows]

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None

    @property
    def queries(self) -> list[str]:
        return [query for query, _ in self.statements]


class FakePool:
    """Fixed-size pool with acquire/release bookkeeping."""

    def __init__(self, size: int = 3):
        self.idle = [FakeConnection(self, f"conn{i}") for i in range(size)]
        self.leased: list[FakeConnection] = []
        self.size = size
        self.rows: list[dict[str, Any]] = []
        self.affected = 1
        self.last_id = 0
        self.fail_once: set[str] = set()
        self.closed = False

    async def acquire(self) -> FakeConnection:
        await asyncio.sleep(0)
        if not self.idle:
            raise RuntimeError("pool exhausted")
        conn = self.idle.pop(0)
        self.leased.append(conn)
        return conn

    async def release(self, conn: FakeConnection) -> None:
        self.leased.remove(conn)
        self.idle.append(conn)

    async def _with_conn(self, method: str, query: str, *args: Any) -> Any:
        conn = await self.acquire()
        try:
            return await getattr(conn, method)(query, *args)
        finally:
            await self.release(conn)

    async def execute(self, query: str, *args: Any) -> str:
        return await self._with_conn("execute", query, *args)

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        return await self._with_conn("fetch", query, *args)

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        return await self._with_conn("fetchrow", query, *args)

    async def close(self) -> None:
        self.closed = True

    def get_idle_size(self) -> int:
        return len(self.idle)

    @property
    def queries(self) -> list[str]:
        conns = self.idle + self.leased
        return [query for conn in sorted(conns, key=lambda c: c.name) for query in conn.queries]


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()
