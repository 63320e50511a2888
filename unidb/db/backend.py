"""Backend interface shared by the SQLite and PostgreSQL implementations.

Both backends accept statements written with ``?`` placeholders and return
rows as plain dicts, so the ``Database`` facade never branches on dialect.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Sequence

from unidb.db.selector import Dialect


@dataclass(frozen=True)
class RunResult:
    """Outcome of a write statement."""

    changes: int = 0
    last_id: int | None = None


class Backend(abc.ABC):
    dialect: Dialect

    @abc.abstractmethod
    async def execute(self, sql: str) -> None:
        """Run a statement or script without parameters.

        ``BEGIN``/``COMMIT``/``ROLLBACK`` are recognised as transaction
        control.
        """

    @abc.abstractmethod
    async def run(self, sql: str, params: Sequence[Any]) -> RunResult:
        """Run a write statement and report affected rows and generated id."""

    @abc.abstractmethod
    async def get(self, sql: str, params: Sequence[Any]) -> dict[str, Any] | None:
        """Return the first row as a dict, or ``None``."""

    @abc.abstractmethod
    async def all(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        """Return all rows as a list of dicts."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release the underlying connection or pool."""
