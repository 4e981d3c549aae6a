"""Celery task driving the step-sequence scan."""
from __future__ import annotations

from loguru import logger

from pushadmin.celery_app import celery_app
from pushadmin.db.session import SessionLocal
from pushadmin.services.runtime import build_progress_engine, get_push_sender


@celery_app.task(name="pushadmin.tasks.step_notifications.run_step_notifications")
def run_step_notifications(tenant_id: int | None = None) -> dict[str, int]:
    """Advance every due progress row once.

    A failing due-row query propagates so the task is reported as failed.
    """

    db = SessionLocal()
    try:
        engine = build_progress_engine(db, get_push_sender())
        result = engine.run_due(tenant_id=tenant_id)
        logger.info("Step notification task finished", tenant_id=tenant_id, **result.as_dict())
        return result.as_dict()
    finally:
        db.close()
