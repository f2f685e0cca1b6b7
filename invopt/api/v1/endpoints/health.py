"""Health check endpoints and dependency checks."""

import redis
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from invopt import __version__
from invopt.db.handle import Database

router = APIRouter()


def check_database(db: Database) -> str:
    """One round trip, no reconnect retries: health checks must answer fast."""
    try:
        with db.session() as session:
            session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return f"error: {e}"
    return "connected"


def check_redis(url: str) -> str:
    try:
        redis.from_url(url, socket_connect_timeout=2).ping()
    except (redis.RedisError, ValueError) as e:
        return f"error: {e}"
    return "connected"


@router.get("/healthz")
async def healthz():
    """Liveness check; touches no dependencies."""
    return {"status": "ok", "service": "invopt", "version": __version__}
