"""Celery application for dispatching and running optimization jobs."""

from celery import Celery

from invopt.config import settings

celery_app = Celery(
    "invopt",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["invopt.tasks.optimize"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # One job at a time per worker process; jobs are long and I/O bound.
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)
