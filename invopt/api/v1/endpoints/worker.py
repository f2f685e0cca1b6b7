"""Worker trigger endpoint for external schedulers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from kombu.exceptions import OperationalError as BrokerError

from invopt.api.deps import verify_worker_secret
from invopt.celery_app import celery_app
from invopt.schemas.job import WorkerTriggerResponse
from invopt.tasks.optimize import RUN_OPTIMIZATION_TASK

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_worker_secret)])


@router.post("/run", response_model=WorkerTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_worker(
    job_id: Optional[int] = Query(None, ge=1, description="Job to run; oldest pending if omitted"),
):
    """
    Ask a worker to run one optimization job. Returns without waiting.

    Requires the `X-Worker-Secret` header.
    """
    try:
        result = celery_app.send_task(RUN_OPTIMIZATION_TASK, args=[job_id])
    except BrokerError as e:
        logger.error(f"Worker trigger failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not reach task broker: {str(e)}"
        )

    logger.info(f"Worker triggered (task_id={result.id}, job_id={job_id})")
    return WorkerTriggerResponse(
        ok=True,
        task_id=result.id,
        job_id=job_id,
        message="Worker triggered",
    )
