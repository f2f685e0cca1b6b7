"""Optimization job schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobCreateRequest(BaseModel):
    """Request to enqueue an optimization job."""

    horizon_days: int = Field(90, gt=0, description="Planning horizon in days")
    service_level: float = Field(
        0.95, gt=0, lt=1, description="Target service level, strictly between 0 and 1"
    )


class JobCreateResponse(BaseModel):
    """Response after enqueueing a job."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    horizon_days: int
    service_level: float
    items_total: int
    created_at: datetime


class ResultRowResponse(BaseModel):
    """Computed figures for one item."""

    model_config = ConfigDict(from_attributes=True)

    item_id: int
    eoq: Optional[float] = None
    reorder_point: Optional[float] = None
    safety_stock: Optional[float] = None


class JobListItem(BaseModel):
    """Job summary for list view."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    horizon_days: int
    service_level: float
    status: str
    items_total: int
    items_processed: int
    progress_percent: int = Field(0, description="floor(processed / total * 100), capped at 100")
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    items: List[JobListItem]
    total: int
    page: int
    size: int
    pages: int


class JobDetailResponse(JobListItem):
    """Job with its failure reason and saved result rows."""

    error: Optional[str] = Field(None, description="Failure reason when status is 'failed'")
    results: List[ResultRowResponse] = Field(default_factory=list)


class JobResultsResponse(BaseModel):
    """All result rows for a job."""

    job_id: int
    count: int
    results: List[ResultRowResponse]


class WorkerTriggerResponse(BaseModel):
    """Response after asking a worker to run."""

    ok: bool
    task_id: Optional[str] = None
    job_id: Optional[int] = None
    message: str
