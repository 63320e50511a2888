"""Database layer — SQLite (default) or PostgreSQL behind one facade."""

from unidb.db.backend import RunResult
from unidb.db.connection import Database, close_db, create_db, get_db, init_db
from unidb.db.errors import ConfigurationError, DatabaseError, TransactionStateError
from unidb.db.selector import Dialect

__all__ = [
    "ConfigurationError",
    "Database",
    "DatabaseError",
    "Dialect",
    "RunResult",
    "TransactionStateError",
    "close_db",
    "create_db",
    "get_db",
    "init_db",
]
