"""Database access helpers."""

from invopt.db.handle import Database, is_connection_lost

__all__ = ["Database", "is_connection_lost"]
