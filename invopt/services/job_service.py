"""Optimization job business logic.

Status moves pending -> running -> complete | failed. Every transition is a
conditional UPDATE on the expected current status, so concurrent runners and
late writers cannot move a job backwards or claim it twice.
"""

import json
import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from invopt.db.handle import Database
from invopt.models.job import JobStatus, OptimizationJob
from invopt.models.result import OptimizationResult
from invopt.services.item_catalog import count_eligible_items

logger = logging.getLogger(__name__)


class JobServiceError(Exception):
    """Base exception for job service errors."""
    pass


class JobNotFoundError(JobServiceError):
    """Job not found."""
    pass


class InvalidJobStateError(JobServiceError):
    """Job is in invalid state for operation."""
    pass


class InvalidJobParametersError(JobServiceError):
    """Horizon or service level out of range."""
    pass


def validate_job_parameters(horizon_days: int, service_level: float) -> None:
    """
    Raises:
        InvalidJobParametersError: If horizon is not a positive integer or
            service level is not strictly between 0 and 1
    """
    if isinstance(horizon_days, bool) or not isinstance(horizon_days, int) or horizon_days <= 0:
        raise InvalidJobParametersError(f"horizon_days must be a positive integer (got {horizon_days!r})")
    if isinstance(service_level, bool) or not isinstance(service_level, (int, float)):
        raise InvalidJobParametersError(f"service_level must be a number (got {service_level!r})")
    if not 0 < service_level < 1:
        raise InvalidJobParametersError(f"service_level must be between 0 and 1 (got {service_level})")


def create_job(db: Database, user_id: int, horizon_days: int, service_level: float) -> OptimizationJob:
    """
    Enqueue a new optimization job.

    Only records the request; a runner claims and executes it later.

    Args:
        db: Database handle
        user_id: Requesting user
        horizon_days: Planning horizon in days
        service_level: Target service level in (0, 1)

    Returns:
        The created job in 'pending' status

    Raises:
        InvalidJobParametersError: On out-of-range parameters
        sqlalchemy.exc.SQLAlchemyError: If the item catalog is unreachable
    """
    validate_job_parameters(horizon_days, service_level)
    items_total = count_eligible_items(db)

    def _insert(session: Session) -> OptimizationJob:
        job = OptimizationJob(
            user_id=user_id,
            horizon_days=horizon_days,
            service_level=float(service_level),
            status=JobStatus.PENDING,
            items_total=items_total,
            items_processed=0,
            created_at=datetime.utcnow(),
        )
        session.add(job)
        session.flush()
        return job

    job = db.run(_insert, "create job")
    logger.info(
        f"Created optimization job {job.id} for user {user_id} "
        f"(horizon={horizon_days}d, service_level={service_level}, items={items_total})"
    )
    return job


def get_job(db: Database, job_id: int) -> OptimizationJob:
    """
    Raises:
        JobNotFoundError: If job not found
    """
    job = db.run(lambda session: session.get(OptimizationJob, job_id), "get job")
    if not job:
        raise JobNotFoundError(f"Job {job_id} not found")
    return job


def get_all_jobs(db: Database) -> List[OptimizationJob]:
    """All jobs, newest first."""
    query = select(OptimizationJob).order_by(
        OptimizationJob.created_at.desc(), OptimizationJob.id.desc()
    )
    return db.run(lambda session: list(session.scalars(query)), "list all jobs")


def list_jobs(
    db: Database,
    page: int = 1,
    size: int = 20,
    status_filter: Optional[str] = None,
) -> Tuple[List[OptimizationJob], int]:
    """
    List jobs with pagination, newest first.

    Returns:
        Tuple of (jobs, total_count)
    """

    def _list(session: Session) -> Tuple[List[OptimizationJob], int]:
        query = select(OptimizationJob)
        count_query = select(func.count(OptimizationJob.id))
        if status_filter:
            query = query.where(OptimizationJob.status == status_filter)
            count_query = count_query.where(OptimizationJob.status == status_filter)

        total = session.execute(count_query).scalar() or 0
        jobs = list(session.scalars(
            query.order_by(OptimizationJob.created_at.desc(), OptimizationJob.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        ))
        return jobs, total

    return db.run(_list, "list jobs")


def get_latest_job_id(db: Database) -> Optional[int]:
    query = (
        select(OptimizationJob.id)
        .order_by(OptimizationJob.created_at.desc(), OptimizationJob.id.desc())
        .limit(1)
    )
    return db.run(lambda session: session.execute(query).scalar(), "latest job id")


def _mark_running(session: Session, job_id: int) -> bool:
    result = session.execute(
        update(OptimizationJob)
        .execution_options(synchronize_session=False)
        .where(OptimizationJob.id == job_id, OptimizationJob.status == JobStatus.PENDING)
        .values(status=JobStatus.RUNNING, started_at=datetime.utcnow())
    )
    return result.rowcount == 1


def claim_job(db: Database, job_id: int) -> Optional[OptimizationJob]:
    """
    Claim a specific pending job.

    Returns:
        The job now in 'running' status, or None if it does not exist or was
        not pending (already claimed by another runner)
    """

    def _claim(session: Session) -> Optional[OptimizationJob]:
        if not _mark_running(session, job_id):
            return None
        return session.get(OptimizationJob, job_id, populate_existing=True)

    job = db.run(_claim, f"claim job {job_id}")
    if job is None:
        logger.info(f"Job {job_id} not found or already claimed")
    else:
        logger.info(f"Claimed job {job_id}")
    return job


def claim_next_job(db: Database) -> Optional[OptimizationJob]:
    """
    Claim the oldest pending job.

    The candidate row is locked with SELECT ... FOR UPDATE for the length of
    the claim transaction, and the status change is still conditional on
    'pending'.

    Returns:
        The claimed job, or None if no job is pending
    """

    def _claim(session: Session) -> Optional[OptimizationJob]:
        job_id = session.execute(
            select(OptimizationJob.id)
            .where(OptimizationJob.status == JobStatus.PENDING)
            .order_by(OptimizationJob.created_at.asc(), OptimizationJob.id.asc())
            .limit(1)
            .with_for_update()
        ).scalar()
        if job_id is None:
            return None
        if not _mark_running(session, job_id):
            logger.info(f"Job {job_id} was claimed by another process")
            return None
        return session.get(OptimizationJob, job_id, populate_existing=True)

    job = db.run(_claim, "claim next job")
    if job is None:
        logger.info("No pending jobs")
    else:
        logger.info(f"Claimed job {job.id}")
    return job


def increment_processed(db: Database, job_id: int, count: int) -> None:
    """
    Add ``count`` to a running job's items_processed.

    Raises:
        InvalidJobStateError: If the job is not running, or the increment
            would push items_processed past items_total (double counting)
    """
    if count <= 0:
        return

    def _increment(session: Session) -> int:
        return session.execute(
            update(OptimizationJob)
            .execution_options(synchronize_session=False)
            .where(
                OptimizationJob.id == job_id,
                OptimizationJob.status == JobStatus.RUNNING,
                OptimizationJob.items_processed + count <= OptimizationJob.items_total,
            )
            .values(items_processed=OptimizationJob.items_processed + count)
        ).rowcount

    if db.run(_increment, f"progress update for job {job_id}") != 1:
        raise InvalidJobStateError(
            f"Cannot add {count} processed item(s) to job {job_id}: "
            f"job is not running or the count would exceed items_total"
        )


def raise_items_total(db: Database, job_id: int, items_total: int) -> None:
    """Raise a running job's items_total when the catalog grew since enqueue."""

    def _raise(session: Session) -> None:
        session.execute(
            update(OptimizationJob)
            .execution_options(synchronize_session=False)
            .where(
                OptimizationJob.id == job_id,
                OptimizationJob.status == JobStatus.RUNNING,
                OptimizationJob.items_total < items_total,
            )
            .values(items_total=items_total)
        )

    db.run(_raise, f"items_total update for job {job_id}")


def _finalize(db: Database, job_id: int, status: str, results: Optional[str]) -> None:
    def _update(session: Session) -> int:
        return session.execute(
            update(OptimizationJob)
            .execution_options(synchronize_session=False)
            .where(OptimizationJob.id == job_id, OptimizationJob.status == JobStatus.RUNNING)
            .values(status=status, results=results, completed_at=datetime.utcnow())
        ).rowcount

    if db.run(_update, f"finalize job {job_id}") != 1:
        raise InvalidJobStateError(f"Job {job_id} is not running; cannot mark it '{status}'")


def mark_job_complete(db: Database, job_id: int, snapshot: Sequence[dict], limit: int = 1000) -> None:
    """
    Mark a running job complete with a capped snapshot of its results.

    Raises:
        InvalidJobStateError: If the job is not running
    """
    _finalize(db, job_id, JobStatus.COMPLETE, json.dumps(list(snapshot)[:limit]))
    logger.info(f"Job {job_id} complete")


def mark_job_failed(db: Database, job_id: int, error: str, max_length: int = 2000) -> None:
    """
    Mark a running job failed, storing a truncated error message.

    Raises:
        InvalidJobStateError: If the job is not running
    """
    message = (error or "Unknown error")[:max_length]
    _finalize(db, job_id, JobStatus.FAILED, json.dumps({"error": message}))
    logger.warning(f"Job {job_id} failed: {message}")


def get_job_results(db: Database, job_id: int) -> List[OptimizationResult]:
    """
    Raises:
        JobNotFoundError: If job not found
    """
    get_job(db, job_id)
    query = (
        select(OptimizationResult)
        .where(OptimizationResult.job_id == job_id)
        .order_by(OptimizationResult.id)
    )
    return db.run(lambda session: list(session.scalars(query)), "job results")
