"""Database layer for settleit."""

from settleit.database.base import Database
from settleit.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
