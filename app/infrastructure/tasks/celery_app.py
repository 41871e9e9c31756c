"""Celery application, broker and result backend both backed by Redis.

Workers run as a separate process from the API server, so author reputation
recomputation never competes with request handlers and survives an API
restart.  Results are kept in Redis for an hour so a stuck recomputation
can be inspected with ``celery inspect`` or the result backend.
"""

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "studyshare",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.infrastructure.tasks.reputation_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    result_expires=3600,
    task_acks_late=True,            # ack only after the task finishes
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,  # re-queue if a worker dies mid-task
    # .delay() gives up quickly when the broker is unreachable.
    broker_connection_retry_on_startup=True,
    broker_transport_options={"max_retries": 1, "interval_start": 0, "interval_step": 0.2},
)
