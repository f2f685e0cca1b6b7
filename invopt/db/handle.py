"""Database handle with reconnect-and-retry.

Hosted MySQL/Postgres instances drop idle connections without warning. Every
database operation the optimization pipeline performs goes through
``Database.run``, which rebuilds the engine from the same URL and retries the
operation when the failure is a lost connection. Any other error propagates
immediately.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

# MySQL client error codes for an unreachable or vanished server.
MYSQL_CONNECTION_ERROR_CODES = frozenset({2002, 2003, 2006, 2013, 2055})

CONNECTION_LOST_MESSAGES = (
    "server has gone away",
    "lost connection",
    "server closed the connection unexpectedly",
    "could not connect",
    "connection refused",
    "connection already closed",
    "connection was closed",
    "terminating connection",
    "can't connect to mysql server",
    "connection timed out",
)


def is_connection_lost(error: BaseException) -> bool:
    """Return True if ``error`` means the database connection is gone."""
    if isinstance(error, DBAPIError):
        if error.connection_invalidated:
            return True
        orig = error.orig
    else:
        orig = error

    if orig is not None:
        args = getattr(orig, "args", ())
        if args and isinstance(args[0], int) and args[0] in MYSQL_CONNECTION_ERROR_CODES:
            return True

        # Postgres SQLSTATE class 08 is "connection exception"
        pgcode = getattr(orig, "pgcode", None)
        if isinstance(pgcode, str) and pgcode.startswith("08"):
            return True

    message = str(orig if orig is not None else error).lower()
    return any(fragment in message for fragment in CONNECTION_LOST_MESSAGES)


class Database:
    """Owns an engine and session factory that can be rebuilt on demand."""

    def __init__(
        self,
        url: str,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        engine_options: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.url = url
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._engine_options = dict(engine_options or {"pool_pre_ping": True})
        self._sleep = sleep
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._connect()

    def _connect(self) -> None:
        self._engine = create_engine(self.url, **self._engine_options)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def reconnect(self) -> None:
        """Drop every pooled connection and build a fresh engine."""
        logger.warning("Rebuilding database connection")
        if self._engine is not None:
            self._engine.dispose()
        self._connect()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session inside a transaction, committed on success."""
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        finally:
            session.close()

    def run(self, operation: Callable[[Session], T], description: str = "database operation") -> T:
        """
        Run ``operation`` in its own transaction, retrying on connection loss.

        Args:
            operation: Callable receiving a session; its return value is returned
            description: Label used in log messages

        Returns:
            Whatever ``operation`` returned

        Raises:
            The last error once the retry budget is exhausted, or any
            non-connection error immediately.
        """
        attempt = 1
        while True:
            try:
                with self.session() as session:
                    return operation(session)
            except DBAPIError as e:
                if not is_connection_lost(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        f"{description} failed after {attempt} attempt(s): connection lost ({e.orig})"
                    )
                    raise
                logger.warning(
                    f"{description}: connection lost on attempt {attempt}/{self.max_attempts}, "
                    f"reconnecting ({e.orig})"
                )
                self.reconnect()
                if self.retry_delay > 0:
                    self._sleep(self.retry_delay)
                attempt += 1
