"""PostgreSQL backend — asyncpg pool with task-local transactions."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import asyncpg

from unidb.db.backend import Backend, RunResult
from unidb.db.returning import extract_last_id, needs_returning_id, with_returning_id
from unidb.db.selector import ConnectionPlan, Dialect
from unidb.db.transactions import TransactionManager, control_kind
from unidb.db.translate import to_postgres_params

logger = logging.getLogger(__name__)


def _status_count(status: str | None) -> int:
    """Row count from a command tag such as ``INSERT 0 1`` or ``UPDATE 3``."""
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class PostgresBackend(Backend):
    dialect = Dialect.POSTGRES

    def __init__(self, pool: Any):
        self._pool = pool
        self.transactions = TransactionManager(pool)

    @classmethod
    async def open(cls, plan: ConnectionPlan) -> PostgresBackend:
        # With dsn=None asyncpg falls back to the PG* environment variables.
        pool = await asyncpg.create_pool(
            dsn=plan.dsn,
            ssl=plan.ssl,
            min_size=0,
            max_size=plan.pool_max,
            max_inactive_connection_lifetime=plan.idle_timeout,
        )
        logger.info(
            "Opened PostgreSQL pool for %s (max %d, ssl=%s)",
            plan.describe(),
            plan.pool_max,
            plan.ssl is not None,
        )
        return cls(pool)

    async def execute(self, sql: str) -> None:
        kind = control_kind(sql)
        if kind is not None:
            await self.transactions.handle(kind)
            return
        await self.transactions.runner().execute(to_postgres_params(sql))

    async def run(self, sql: str, params: Sequence[Any]) -> RunResult:
        text = to_postgres_params(sql)
        runner = self.transactions.runner()
        if needs_returning_id(text):
            rows = await runner.fetch(with_returning_id(text), *params)
            return RunResult(changes=len(rows), last_id=extract_last_id(rows))
        status = await runner.execute(text, *params)
        return RunResult(changes=_status_count(status))

    async def get(self, sql: str, params: Sequence[Any]) -> dict[str, Any] | None:
        row = await self.transactions.runner().fetchrow(to_postgres_params(sql), *params)
        return dict(row) if row is not None else None

    async def all(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        rows = await self.transactions.runner().fetch(to_postgres_params(sql), *params)
        return [dict(row) for row in rows]

    async def close(self) -> None:
        await self.transactions.close()
        await self._pool.close()
        logger.info("Closed PostgreSQL pool")
