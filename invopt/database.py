"""Database base class and shared handle."""

from functools import lru_cache

from sqlalchemy.orm import declarative_base

from invopt.config import settings
from invopt.db.handle import Database

Base = declarative_base()


@lru_cache(maxsize=1)
def get_database() -> Database:
    """Return the process-wide database handle, created on first use."""
    return Database(
        settings.database_url,
        max_attempts=settings.db_reconnect_attempts,
        retry_delay=settings.db_reconnect_delay_seconds,
    )
