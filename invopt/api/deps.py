"""API dependencies."""

import hmac

from fastapi import Header, HTTPException, status

from invopt.config import settings
from invopt.database import get_database
from invopt.db.handle import Database

# Roles allowed to run and inspect optimizations.
PLANNER_ROLES = ("Admin", "Manager")


def get_db() -> Database:
    """Get the database handle."""
    return get_database()


def get_user_id(x_user_id: str = Header(None)) -> int:
    """Get requesting user ID from header set by the auth layer."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID must be an integer",
        )
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID must be positive",
        )
    return user_id


def require_planner(x_user_role: str = Header(None)) -> str:
    """Only Admin and Manager roles may use optimization endpoints."""
    if x_user_role not in PLANNER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role must be one of: {', '.join(PLANNER_ROLES)}",
        )
    return x_user_role


def verify_worker_secret(x_worker_secret: str = Header(None)) -> None:
    """Check the shared secret used by external schedulers to trigger the worker."""
    if not x_worker_secret or not hmac.compare_digest(x_worker_secret, settings.worker_secret):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )
