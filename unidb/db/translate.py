"""Placeholder translation for the ``?`` statement syntax.

Callers write every statement with generic ``?`` markers. SQLite accepts
that natively; PostgreSQL wants indexed ``$1, $2, ...`` parameters. This is
a narrow text shim for that one difference (plus generated-key retrieval in
``returning``), not a general dialect translator.

The lexer is literal- and comment-aware: markers inside ``'...'`` strings,
``"..."`` identifiers, ``-- ...`` line comments and ``/* ... */`` block
comments are left alone and do not advance the parameter index. Doubled
quotes (``''`` / ``""``) continue the literal they appear in.
"""

from __future__ import annotations

import re
from typing import Iterator

MARKER = "?"

_TRAILING_TERMINATORS_RE = re.compile(r"[;\s]+$")


def _quoted_end(sql: str, start: int, quote: str) -> int:
    """Index just past the literal opened at ``start``, or ``len(sql)``."""
    pos = start + 1
    while True:
        pos = sql.find(quote, pos)
        if pos == -1:
            return len(sql)
        if sql[pos + 1 : pos + 2] == quote:
            pos += 2
            continue
        return pos + 1


def _segments(sql: str) -> Iterator[tuple[str, bool]]:
    """Split ``sql`` into ``(text, is_code)`` runs.

    Non-code runs are complete literals or comments, delimiters included.
    Concatenating every ``text`` gives back the input unchanged.
    """
    length = len(sql)
    start = pos = 0
    while pos < length:
        ch = sql[pos]
        pair = sql[pos : pos + 2]
        if pair == "--":
            end = sql.find("\n", pos + 2)
            end = length if end == -1 else end + 1
        elif pair == "/*":
            end = sql.find("*/", pos + 2)
            end = length if end == -1 else end + 2
        elif ch in ("'", '"'):
            end = _quoted_end(sql, pos, ch)
        else:
            pos += 1
            continue

        if start < pos:
            yield sql[start:pos], True
        yield sql[pos:end], False
        start = pos = end

    if start < length:
        yield sql[start:], True


def to_postgres_params(sql: str) -> str:
    """Rewrite executable ``?`` markers into ``$1``, ``$2``, ... in order."""
    out: list[str] = []
    index = 0
    for text, is_code in _segments(sql):
        if not is_code or MARKER not in text:
            out.append(text)
            continue
        pieces = text.split(MARKER)
        out.append(pieces[0])
        for piece in pieces[1:]:
            index += 1
            out.append(f"${index}")
            out.append(piece)
    return "".join(out)


def trim_statement_end(sql: str) -> str:
    """Drop trailing comments, semicolons and whitespace.

    The result ends in executable text (or a literal), so a clause appended
    to it stays part of the statement.
    """
    segments = list(_segments(sql))
    while segments:
        text, is_code = segments[-1]
        if is_code:
            trimmed = _TRAILING_TERMINATORS_RE.sub("", text)
            if trimmed:
                segments[-1] = (trimmed, True)
                break
            segments.pop()
        elif text.startswith(("--", "/*")):
            segments.pop()
        else:
            break
    return "".join(text for text, _ in segments)


def split_statements(sql: str) -> list[str]:
    """Split a script on top-level ``;`` into individual statements.

    Semicolons inside literals and comments do not split. Fragments holding
    nothing but whitespace and comments are dropped.
    """
    statements: list[str] = []
    current: list[str] = []
    has_code = False

    def flush() -> None:
        text = "".join(current).strip()
        if text and has_code:
            statements.append(text)

    for text, is_code in _segments(sql):
        if not is_code:
            current.append(text)
            continue
        parts = text.split(";")
        for i, part in enumerate(parts):
            if i:
                flush()
                current = []
                has_code = False
            current.append(part)
            has_code = has_code or bool(part.strip())

    flush()
    return statements
