"""SQLAlchemy models."""

from invopt.database import Base
from invopt.models.item import Item
from invopt.models.job import JobStatus, OptimizationJob
from invopt.models.result import OptimizationResult

__all__ = [
    "Base",
    "Item",
    "JobStatus",
    "OptimizationJob",
    "OptimizationResult",
]
