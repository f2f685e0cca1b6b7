"""Optimization job task."""

import logging
from typing import Optional

from celery.signals import after_setup_logger

from invopt.celery_app import celery_app
from invopt.config import settings
from invopt.database import get_database
from invopt.logging_config import configure_logging
from invopt.runner import run_once
from invopt.services.pipeline import OptimizationPipeline

logger = logging.getLogger(__name__)

RUN_OPTIMIZATION_TASK = "invopt.tasks.optimize.run_optimization_job"


@after_setup_logger.connect
def _attach_job_log(**kwargs):
    configure_logging(settings.log_level, settings.log_file)


@celery_app.task(bind=True, name=RUN_OPTIMIZATION_TASK)
def run_optimization_job(self, job_id: Optional[int] = None) -> dict:
    """
    Claim and process one optimization job.

    Args:
        job_id: Job to claim; the oldest pending job when None

    Returns:
        Dict with the job id and its final status
    """
    logger.info(f"Starting optimization task (job_id={job_id})")

    db = get_database()
    pipeline = OptimizationPipeline.from_settings(db, settings)
    try:
        outcome = run_once(db, pipeline, job_id)
    finally:
        pipeline.client.close()

    if outcome is None:
        return {"status": "skipped", "job_id": job_id, "message": "No pending job claimed"}

    return {
        "status": outcome.status,
        "job_id": outcome.job_id,
        "items_saved": outcome.items_saved,
        "batches_succeeded": outcome.batches_succeeded,
        "batches_failed": outcome.batches_failed,
        "error": outcome.error,
    }
