"""Generated-id retrieval for INSERT statements.

SQLite reports the new rowid on the cursor. PostgreSQL has no such
metadata, so eligible INSERTs get ``RETURNING id`` appended and the id is
read back from the first returned row.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from unidb.db.translate import trim_statement_end

_INSERT_RE = re.compile(r"^insert\s+", re.IGNORECASE)
_RETURNING_RE = re.compile(r"\breturning\s+", re.IGNORECASE)

RETURNING_ID = "RETURNING id"


def needs_returning_id(sql: str) -> bool:
    """True for an INSERT that does not already carry a RETURNING clause."""
    text = str(sql or "").strip()
    if not _INSERT_RE.match(text):
        return False
    return not _RETURNING_RE.search(text)


def with_returning_id(sql: str) -> str:
    """Append ``RETURNING id`` to an eligible INSERT, else return ``sql``."""
    if not needs_returning_id(sql):
        return sql
    return f"{trim_statement_end(sql)} {RETURNING_ID}"


def extract_last_id(rows: Sequence[Any]) -> int | None:
    """Numeric ``id`` of the first row, if there is one."""
    if not rows:
        return None
    value = rows[0].get("id")
    if value is None:
        return None
    return int(value)
