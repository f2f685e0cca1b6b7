"""Persistence of optimization results."""

import logging
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invopt.db.handle import Database, is_connection_lost
from invopt.models.result import OptimizationResult
from invopt.services.normalizer import ResultRow

logger = logging.getLogger(__name__)


def save_results(db: Database, job_id: int, rows: Sequence[ResultRow]) -> int:
    """
    Save one batch of result rows in a single transaction.

    Any row-level failure rolls back the whole batch and reports zero saved
    rows. A connection that stays lost after the retry budget propagates to
    the caller instead.

    Args:
        db: Database handle
        job_id: Owning job
        rows: Normalized rows, at most one per item

    Returns:
        Number of rows committed
    """
    if not rows:
        return 0

    def _save(session: Session) -> int:
        session.add_all(
            OptimizationResult(
                job_id=job_id,
                item_id=row.item_id,
                eoq=row.eoq,
                reorder_point=row.reorder_point,
                safety_stock=row.safety_stock,
            )
            for row in rows
        )
        session.flush()
        return len(rows)

    try:
        saved = db.run(_save, f"save results for job {job_id}")
    except SQLAlchemyError as e:
        if is_connection_lost(e):
            raise
        logger.error(f"Failed to save {len(rows)} result row(s) for job {job_id}, batch rolled back: {e}")
        return 0

    logger.info(f"Saved {saved} optimization_results row(s) for job {job_id}")
    return saved
