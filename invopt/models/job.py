"""Optimization job model."""

import json
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, Text, String
from sqlalchemy.orm import relationship

from invopt.database import Base


class JobStatus:
    """Job status values. pending -> running -> complete | failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"

    TERMINAL = (COMPLETE, FAILED)


class OptimizationJob(Base):
    """One optimization run over the active item catalog."""

    __tablename__ = "optimization_jobs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    horizon_days = Column(Integer, nullable=False)
    service_level = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default=JobStatus.PENDING, index=True)
    items_total = Column(Integer, nullable=False, default=0)
    items_processed = Column(Integer, nullable=False, default=0)
    results = Column(Text, nullable=True)  # JSON snapshot, or {"error": ...} when failed
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    result_rows = relationship(
        "OptimizationResult",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="OptimizationResult.id",
    )

    @property
    def results_payload(self):
        """Decoded ``results`` column, or None."""
        if not self.results:
            return None
        try:
            return json.loads(self.results)
        except (json.JSONDecodeError, TypeError):
            return None

    @property
    def error_message(self):
        payload = self.results_payload
        if self.status == JobStatus.FAILED and isinstance(payload, dict):
            return payload.get("error")
        return None

    @property
    def progress_percent(self) -> int:
        if not self.items_total:
            return 0
        return min(100, (self.items_processed or 0) * 100 // self.items_total)

    def __repr__(self):
        return f"<OptimizationJob(id={self.id}, status={self.status}, user_id={self.user_id})>"
