"""Celery tasks."""

from invopt.tasks.optimize import RUN_OPTIMIZATION_TASK, run_optimization_job  # noqa: F401

__all__ = ["RUN_OPTIMIZATION_TASK", "run_optimization_job"]
