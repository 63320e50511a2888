"""Database layer exceptions."""

from __future__ import annotations


class DatabaseError(Exception):
    """Base class for errors raised by the access layer itself.

    Driver errors (asyncpg, sqlite3) are not wrapped and reach the caller
    unchanged.
    """


class ConfigurationError(DatabaseError):
    """The selected backend is missing required connection parameters."""


class TransactionStateError(DatabaseError):
    """A control statement arrived in a state where it is not allowed."""
