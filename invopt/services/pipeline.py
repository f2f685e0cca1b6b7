"""Optimization pipeline for one claimed job.

Pipeline:
1. Extract eligible items from the catalog
2. Split them into contiguous batches
3. POST each batch to the optimization engine
4. Normalize the response, save result rows, bump progress
5. Copy figures back onto the catalog (best effort)
6. Mark the job complete or failed

A failed batch does not stop the job. The job completes when at least one
batch saved at least one row.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from invopt.config import Settings
from invopt.db.handle import Database
from invopt.models.job import JobStatus, OptimizationJob
from invopt.services import job_service
from invopt.services.item_catalog import (
    CatalogUpdateOutcome,
    ItemSnapshot,
    apply_results_to_catalog,
    extract_items,
)
from invopt.services.normalizer import ResultRow, normalize_results
from invopt.services.optimizer_client import OptimizerClient, OptimizerError, build_payload, chunk
from invopt.services.result_service import save_results

logger = logging.getLogger(__name__)

NO_ITEMS_MESSAGE = "No items available to optimize."


@dataclass
class BatchOutcome:
    """What happened to one batch."""

    index: int
    size: int
    saved: int = 0
    error: Optional[str] = None
    catalog_update: Optional[CatalogUpdateOutcome] = None

    @property
    def succeeded(self) -> bool:
        return self.saved > 0


@dataclass
class PipelineOutcome:
    """Summary of a pipeline run."""

    job_id: int
    status: str
    batches: List[BatchOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def items_saved(self) -> int:
        return sum(batch.saved for batch in self.batches)

    @property
    def batches_succeeded(self) -> int:
        return sum(1 for batch in self.batches if batch.succeeded)

    @property
    def batches_failed(self) -> int:
        return len(self.batches) - self.batches_succeeded


class OptimizationPipeline:
    """Runs a claimed job against the optimization engine."""

    def __init__(
        self,
        db: Database,
        client: OptimizerClient,
        batch_size: int = 200,
        snapshot_limit: int = 1000,
        error_max_length: int = 2000,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.db = db
        self.client = client
        self.batch_size = batch_size
        self.snapshot_limit = snapshot_limit
        self.error_max_length = error_max_length

    @classmethod
    def from_settings(cls, db: Database, settings: Settings) -> "OptimizationPipeline":
        client = OptimizerClient(
            settings.optimizer_api_url,
            timeout=settings.optimizer_timeout_seconds,
            connect_timeout=settings.optimizer_connect_timeout_seconds,
        )
        return cls(
            db,
            client,
            batch_size=settings.optimizer_batch_size,
            snapshot_limit=settings.results_snapshot_limit,
            error_max_length=settings.job_error_max_length,
        )

    def fail(self, job_id: int, reason: str) -> PipelineOutcome:
        job_service.mark_job_failed(self.db, job_id, reason, self.error_max_length)
        return PipelineOutcome(job_id=job_id, status=JobStatus.FAILED, error=reason)

    def execute(self, job: OptimizationJob) -> PipelineOutcome:
        """
        Process a job that this runner has already claimed.

        Args:
            job: Job in 'running' status

        Returns:
            PipelineOutcome with the terminal status written to the job

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the database stays unreachable
                after reconnect attempts
            InvalidJobStateError: If the job stopped being 'running' underneath us
        """
        if job.status != JobStatus.RUNNING:
            raise job_service.InvalidJobStateError(
                f"Job {job.id} must be running to execute (current: {job.status})"
            )

        items = extract_items(self.db)
        if not items:
            return self.fail(job.id, NO_ITEMS_MESSAGE)

        if len(items) > (job.items_total or 0):
            logger.warning(
                f"Job {job.id}: catalog grew from {job.items_total} to {len(items)} eligible item(s) "
                f"since enqueue"
            )
            job_service.raise_items_total(self.db, job.id, len(items))

        batches = chunk(items, self.batch_size)
        logger.info(f"Job {job.id}: {len(items)} item(s) in {len(batches)} batch(es) of up to {self.batch_size}")

        outcome = PipelineOutcome(job_id=job.id, status=JobStatus.RUNNING)
        snapshot: List[dict] = []

        for index, batch in enumerate(batches, start=1):
            batch_outcome, rows = self._run_batch(job, index, batch)
            outcome.batches.append(batch_outcome)
            if batch_outcome.succeeded and len(snapshot) < self.snapshot_limit:
                snapshot.extend(row.to_dict() for row in rows[: self.snapshot_limit - len(snapshot)])

        if outcome.batches_succeeded and outcome.items_saved:
            job_service.mark_job_complete(self.db, job.id, snapshot, self.snapshot_limit)
            outcome.status = JobStatus.COMPLETE
            logger.info(
                f"Job {job.id} complete: {outcome.items_saved} row(s) saved, "
                f"{outcome.batches_succeeded}/{len(batches)} batch(es) succeeded"
            )
            return outcome

        last_error = next((b.error for b in reversed(outcome.batches) if b.error), "no rows saved")
        reason = f"All {len(batches)} batch(es) failed. Last error: {last_error}"
        job_service.mark_job_failed(self.db, job.id, reason, self.error_max_length)
        outcome.status = JobStatus.FAILED
        outcome.error = reason
        return outcome

    def _run_batch(
        self, job: OptimizationJob, index: int, batch: Sequence[ItemSnapshot]
    ) -> Tuple[BatchOutcome, List[ResultRow]]:
        outcome = BatchOutcome(index=index, size=len(batch))
        payload = build_payload(job.id, batch, job.horizon_days, job.service_level)

        try:
            response = self.client.optimize_batch(payload)
        except OptimizerError as e:
            outcome.error = str(e)
            logger.error(f"Job {job.id} batch {index}: optimizer call failed: {e}")
            return outcome, []

        rows = self._rows_for_batch(job.id, index, normalize_results(response), batch)
        if not rows:
            outcome.error = "Optimizer returned no usable rows after normalization"
            logger.warning(f"Job {job.id} batch {index}: {outcome.error}")
            return outcome, []

        outcome.saved = save_results(self.db, job.id, rows)
        if not outcome.saved:
            outcome.error = "Failed to save results"
            return outcome, []

        job_service.increment_processed(self.db, job.id, outcome.saved)

        outcome.catalog_update = apply_results_to_catalog(self.db, rows)
        logger.info(
            f"Job {job.id} batch {index}: saved {outcome.saved}/{len(batch)} row(s), "
            f"catalog updated {outcome.catalog_update.updated}"
        )
        return outcome, rows

    @staticmethod
    def _rows_for_batch(
        job_id: int, index: int, rows: List[ResultRow], batch: Sequence[ItemSnapshot]
    ) -> List[ResultRow]:
        sent = {item.item_id for item in batch}
        kept = [row for row in rows if row.item_id in sent]
        dropped = len(rows) - len(kept)
        if dropped:
            logger.warning(f"Job {job_id} batch {index}: dropped {dropped} row(s) for items not in the batch")
        return kept
