"""Optimization result model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from invopt.database import Base


class OptimizationResult(Base):
    """Computed figures for one item within one job."""

    __tablename__ = "optimization_results"
    __table_args__ = (
        UniqueConstraint("job_id", "item_id", name="uq_optimization_results_job_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(
        Integer, ForeignKey("optimization_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id = Column(Integer, nullable=False, index=True)
    eoq = Column(Float, nullable=True)
    reorder_point = Column(Float, nullable=True)
    safety_stock = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    job = relationship("OptimizationJob", back_populates="result_rows")

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "eoq": self.eoq,
            "reorder_point": self.reorder_point,
            "safety_stock": self.safety_stock,
        }

    def __repr__(self):
        return f"<OptimizationResult(job_id={self.job_id}, item_id={self.item_id})>"
