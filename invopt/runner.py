"""Optimization job runner.

Claims at most one pending job and runs the pipeline for it. Invoked by the
Celery task or from the command line (cron, on-demand):

    python -m invopt.runner            # oldest pending job
    python -m invopt.runner --job-id 42
"""

import argparse
import logging
import sys
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from invopt.config import settings
from invopt.database import get_database
from invopt.db.handle import Database
from invopt.logging_config import configure_logging
from invopt.models.job import JobStatus
from invopt.services import job_service
from invopt.services.job_service import InvalidJobStateError
from invopt.services.pipeline import OptimizationPipeline, PipelineOutcome

logger = logging.getLogger(__name__)


def run_once(
    db: Database,
    pipeline: OptimizationPipeline,
    job_id: Optional[int] = None,
) -> Optional[PipelineOutcome]:
    """
    Claim one job and execute it.

    Args:
        db: Database handle
        pipeline: Pipeline bound to the same database
        job_id: Claim this job; otherwise the oldest pending one

    Returns:
        The pipeline outcome, or None when nothing was claimed
    """
    if job_id is None:
        job = job_service.claim_next_job(db)
    else:
        job = job_service.claim_job(db, job_id)

    if job is None:
        return None

    try:
        return pipeline.execute(job)
    except Exception as e:
        logger.exception(f"Error processing job {job.id}: {e}")

        # Leave the job in a terminal state rather than stuck in 'running'
        try:
            job_service.mark_job_failed(db, job.id, str(e) or e.__class__.__name__, pipeline.error_max_length)
        except (SQLAlchemyError, InvalidJobStateError) as update_error:
            logger.exception(f"Failed to mark job {job.id} as failed: {update_error}")
            raise
        return PipelineOutcome(job_id=job.id, status=JobStatus.FAILED, error=str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one pending optimization job.")
    parser.add_argument("--job-id", type=int, default=None, help="claim this job instead of the oldest pending one")
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--log-file", default=settings.log_file)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    db = get_database()
    pipeline = OptimizationPipeline.from_settings(db, settings)
    try:
        outcome = run_once(db, pipeline, args.job_id)
    finally:
        pipeline.client.close()
        db.dispose()

    if outcome is None:
        logger.info("No job claimed")
        return 0

    logger.info(
        f"Job {outcome.job_id} finished with status '{outcome.status}' "
        f"({outcome.items_saved} row(s) saved)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
