"""SQLite backend — one persistent aiosqlite connection.

The file engine has no meaningful concurrent writers, so there is no pool
and no per-task transaction binding: ``BEGIN``/``COMMIT``/``ROLLBACK`` run
on the single connection, which aiosqlite serializes on its worker thread.
The connection is opened in autocommit mode so those control statements
are the only transaction brackets.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterator, Sequence

import aiosqlite

from unidb.db.backend import Backend, RunResult
from unidb.db.errors import TransactionStateError
from unidb.db.returning import needs_returning_id
from unidb.db.selector import Dialect
from unidb.db.transactions import ControlKind, control_kind
from unidb.db.translate import split_statements, trim_statement_end

logger = logging.getLogger(__name__)


def complete_statements(sql: str) -> Iterator[str]:
    """Yield the statements of a script, each one complete for SQLite.

    ``split_statements`` cuts on every top-level ``;``, which also cuts
    through ``CREATE TRIGGER ... BEGIN ...; END`` bodies. Pieces are joined
    back until SQLite reports the text as a complete statement.
    """
    buffer = ""
    for piece in split_statements(sql):
        buffer += f"{trim_statement_end(piece)};\n"
        if sqlite3.complete_statement(buffer):
            yield buffer.strip()
            buffer = ""
    if buffer:
        yield buffer.strip()


class SQLiteBackend(Backend):
    dialect = Dialect.SQLITE

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    @classmethod
    async def open(cls, path: Path) -> SQLiteBackend:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(path), isolation_level=None)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        logger.info("Opened SQLite database at %s", path)
        return cls(conn)

    async def execute(self, sql: str) -> None:
        kind = control_kind(sql)
        if kind is not None:
            await self._control(kind)
            return
        # One statement at a time: executescript() would commit an open
        # transaction before running.
        for statement in complete_statements(sql):
            await self._conn.execute(statement)

    async def _control(self, kind: ControlKind) -> None:
        if kind is ControlKind.BEGIN:
            if self._conn.in_transaction:
                raise TransactionStateError("Transaction already started")
            await self._conn.execute("BEGIN")
            return
        if not self._conn.in_transaction:
            return
        await self._conn.execute(kind.value)

    async def run(self, sql: str, params: Sequence[Any]) -> RunResult:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            # rowcount is only final once RETURNING rows are consumed.
            rows = await cursor.fetchall()
            changes = len(rows) if cursor.description else max(cursor.rowcount, 0)
            last_id = cursor.lastrowid if needs_returning_id(sql) else None
        return RunResult(changes=changes, last_id=int(last_id) if last_id else None)

    async def get(self, sql: str, params: Sequence[Any]) -> dict[str, Any] | None:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def all(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def close(self) -> None:
        if self._conn.in_transaction:
            logger.warning("Rolling back transaction left open at close")
            try:
                await self._conn.execute("ROLLBACK")
            except Exception:
                logger.warning("Rollback at close failed", exc_info=True)
        await self._conn.close()
        logger.info("Closed SQLite database")
