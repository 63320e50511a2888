"""Task-local transaction binding for pooled backends.

``BEGIN`` leases a connection from the pool and binds it to the current
call chain through a ``ContextVar``. Every statement issued by that chain
until ``COMMIT``/``ROLLBACK`` goes to the leased connection; everything else
goes to the pool, which leases and returns a connection per call.

A ``ContextVar`` follows asyncio tasks: coroutines awaited inside one task
share the binding, while separately created tasks each start from the value
present when they were spawned. Two requests served by different tasks
therefore never see each other's lease.
"""

from __future__ import annotations

import logging
import re
from contextvars import ContextVar
from enum import Enum
from typing import Any

from unidb.db.errors import TransactionStateError

logger = logging.getLogger(__name__)

_TRAILING_SEMICOLONS_RE = re.compile(r";+\s*$")


class ControlKind(str, Enum):
    BEGIN = "BEGIN"
    COMMIT = "COMMIT"
    ROLLBACK = "ROLLBACK"


_CONTROL_STATEMENTS = {
    "BEGIN": ControlKind.BEGIN,
    "BEGIN TRANSACTION": ControlKind.BEGIN,
    "COMMIT": ControlKind.COMMIT,
    "ROLLBACK": ControlKind.ROLLBACK,
}


def control_kind(sql: str) -> ControlKind | None:
    """Classify ``sql`` as a transaction control statement, if it is one."""
    text = _TRAILING_SEMICOLONS_RE.sub("", str(sql or "").strip()).strip()
    return _CONTROL_STATEMENTS.get(text.upper())


class TransactionManager:
    """Binds at most one leased connection to each call chain.

    ``pool`` needs ``acquire()``/``release(conn)`` coroutines and the same
    ``execute``/``fetch``/``fetchrow`` surface as its connections (asyncpg's
    ``Pool`` and ``Connection`` both qualify).
    """

    def __init__(self, pool: Any):
        self._pool = pool
        self._lease: ContextVar[Any | None] = ContextVar(
            f"unidb_transaction_{id(self)}", default=None
        )
        self._outstanding: set[Any] = set()

    @property
    def in_transaction(self) -> bool:
        return self._lease.get() is not None

    @property
    def outstanding(self) -> int:
        """Leases currently held across all call chains."""
        return len(self._outstanding)

    def runner(self) -> Any:
        """The bound connection when inside a transaction, else the pool."""
        conn = self._lease.get()
        return self._pool if conn is None else conn

    async def begin(self) -> None:
        if self._lease.get() is not None:
            raise TransactionStateError("Transaction already started")

        conn = await self._pool.acquire()
        try:
            await conn.execute("BEGIN")
        except BaseException:
            await self._release(conn)
            raise

        self._outstanding.add(conn)
        self._lease.set(conn)
        logger.debug("Transaction started on %r", conn)

    async def commit(self) -> None:
        await self._finish("COMMIT")

    async def rollback(self) -> None:
        await self._finish("ROLLBACK")

    async def handle(self, kind: ControlKind) -> None:
        if kind is ControlKind.BEGIN:
            await self.begin()
        elif kind is ControlKind.COMMIT:
            await self.commit()
        else:
            await self.rollback()

    async def _finish(self, command: str) -> None:
        conn = self._lease.get()
        if conn is None:
            return
        try:
            await conn.execute(command)
            logger.debug("Transaction %s on %r", command.lower(), conn)
        finally:
            self._lease.set(None)
            self._outstanding.discard(conn)
            await self._release(conn)

    async def _release(self, conn: Any) -> None:
        try:
            await self._pool.release(conn)
        except Exception:
            logger.warning("Failed to release connection %r", conn, exc_info=True)

    async def close(self) -> None:
        """Roll back and release every lease still held."""
        for conn in list(self._outstanding):
            logger.warning("Rolling back transaction left open at close on %r", conn)
            try:
                await conn.execute("ROLLBACK")
            except Exception:
                logger.warning("Rollback at close failed on %r", conn, exc_info=True)
            await self._release(conn)
        self._outstanding.clear()
        self._lease.set(None)
