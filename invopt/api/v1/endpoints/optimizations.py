"""Optimization jobs API endpoints."""

import logging
import math
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.exc import SQLAlchemyError

from invopt.api.deps import get_db, get_user_id, require_planner
from invopt.celery_app import celery_app
from invopt.db.handle import Database
from invopt.models.job import OptimizationJob
from invopt.schemas.job import (
    JobCreateRequest,
    JobCreateResponse,
    JobDetailResponse,
    JobListItem,
    JobListResponse,
    JobResultsResponse,
    ResultRowResponse,
)
from invopt.services.job_service import (
    InvalidJobParametersError,
    JobNotFoundError,
    create_job,
    get_job,
    get_job_results,
    get_latest_job_id,
    list_jobs,
)
from invopt.tasks.optimize import RUN_OPTIMIZATION_TASK

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_planner)])

JobStatusFilter = Literal["pending", "running", "complete", "failed"]


def _job_detail(db: Database, job: OptimizationJob) -> JobDetailResponse:
    results = get_job_results(db, job.id)
    summary = JobListItem.model_validate(job)
    return JobDetailResponse(
        **summary.model_dump(),
        error=job.error_message,
        results=[ResultRowResponse.model_validate(row) for row in results],
    )


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_201_CREATED)
def enqueue_optimization(
    request: JobCreateRequest,
    db: Database = Depends(get_db),
    user_id: int = Depends(get_user_id),
):
    """
    Enqueue an optimization job over the active item catalog.

    - **horizon_days**: Planning horizon in days (default: 90)
    - **service_level**: Target service level in (0, 1) (default: 0.95)

    The job is created 'pending' and handed to a worker; poll
    `GET /optimizations/{id}` for progress.
    """
    try:
        job = create_job(db, user_id, request.horizon_days, request.service_level)
    except InvalidJobParametersError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to enqueue optimization job")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Item catalog unavailable: {str(e)}"
        )

    # A job left pending is still picked up by the scheduled runner.
    try:
        celery_app.send_task(RUN_OPTIMIZATION_TASK, args=[job.id])
    except BrokerError as e:
        logger.warning(f"Could not dispatch job {job.id} to a worker, leaving it pending: {e}")

    return JobCreateResponse.model_validate(job)


@router.get("", response_model=JobListResponse)
def list_optimizations(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    status_filter: Optional[JobStatusFilter] = Query(None, description="Filter by status"),
    db: Database = Depends(get_db),
):
    """
    List optimization jobs, newest first.

    - **status_filter**: Optional status filter (pending, running, complete, failed)
    """
    try:
        jobs, total = list_jobs(db, page, size, status_filter)
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list jobs: {str(e)}"
        )

    return JobListResponse(
        items=[JobListItem.model_validate(job) for job in jobs],
        total=total,
        page=page,
        size=size,
        pages=math.ceil(total / size) if total > 0 else 1,
    )


@router.get("/latest", response_model=JobDetailResponse)
def get_latest_optimization(db: Database = Depends(get_db)):
    """Get the most recently created job."""
    job_id = get_latest_job_id(db)
    if job_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No optimization jobs found. Please run one."
        )
    try:
        return _job_detail(db, get_job(db, job_id))
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{job_id}", response_model=JobDetailResponse)
def get_optimization(job_id: int, db: Database = Depends(get_db)):
    """
    Get job status, progress and results.

    - **job_id**: Job ID
    """
    try:
        return _job_detail(db, get_job(db, job_id))
    except JobNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )


@router.get("/{job_id}/results", response_model=JobResultsResponse)
def get_optimization_results(job_id: int, db: Database = Depends(get_db)):
    """Get every saved result row for a job."""
    try:
        rows = get_job_results(db, job_id)
    except JobNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    return JobResultsResponse(
        job_id=job_id,
        count=len(rows),
        results=[ResultRowResponse.model_validate(row) for row in rows],
    )
