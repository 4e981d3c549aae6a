"""Celery application instance and configuration."""
from __future__ import annotations

from celery import Celery

from pushadmin.config import settings


def _resolve_broker_url() -> str:
    if settings.CELERY_BROKER_URL is not None:
        return str(settings.CELERY_BROKER_URL)
    return str(settings.REDIS_URL)


def _resolve_result_backend() -> str:
    if settings.CELERY_RESULT_BACKEND is not None:
        return str(settings.CELERY_RESULT_BACKEND)
    return str(settings.REDIS_URL)


celery_app = Celery(
    "pushadmin",
    broker=_resolve_broker_url(),
    backend=_resolve_result_backend(),
    include=[
        "pushadmin.tasks.step_notifications",
        "pushadmin.tasks.scheduled",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

celery_app.conf.beat_schedule = {
    "run-step-notifications": {
        "task": "pushadmin.tasks.step_notifications.run_step_notifications",
        "schedule": settings.STEP_SCAN_INTERVAL_MINUTES * 60.0,
    },
    "send-scheduled-notifications": {
        "task": "pushadmin.tasks.scheduled.send_scheduled_notifications",
        "schedule": settings.BROADCAST_SWEEP_INTERVAL_MINUTES * 60.0,
    },
}

__all__ = ["celery_app"]
