"""One SQL access API over SQLite and PostgreSQL."""

from unidb.db.connection import Database, create_db, get_db, init_db

__all__ = ["Database", "create_db", "get_db", "init_db"]
