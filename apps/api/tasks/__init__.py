"""
Celery application for the club's background jobs.

The API only enqueues; the worker (apps/worker/main.py) executes. Both import
`celery_app` from here so task names resolve the same way on either side.
"""
from celery import Celery

from core.config import settings
from celerybeat_schedule import beat_schedule

celery_app = Celery(
    "running_club",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Beat crontabs are written in UTC; club-local times are noted beside each entry.
    timezone="UTC",
    enable_utc=True,
    # A full backfill pages through years of activities with pauses between pages.
    task_soft_time_limit=20 * 60,
    task_time_limit=25 * 60,
    # One member's sync at a time per worker process keeps Strava usage even.
    worker_prefetch_multiplier=1,
    result_expires=24 * 3600,
    beat_schedule=beat_schedule,
)

from . import strava_tasks  # noqa: E402,F401  registers the tasks

__all__ = ["celery_app"]
