"""Celery tasks for scheduled broadcast notifications."""
from __future__ import annotations

from typing import Any

from loguru import logger

from pushadmin.celery_app import celery_app
from pushadmin.db.session import SessionLocal
from pushadmin.services.runtime import build_broadcast_service, get_push_sender


@celery_app.task(name="pushadmin.tasks.scheduled.send_scheduled_notifications")
def send_scheduled_notifications() -> dict[str, Any]:
    """Send every unsent broadcast whose send_at has passed."""

    db = SessionLocal()
    try:
        service = build_broadcast_service(db, get_push_sender())
        results = service.send_due()
        logger.info("Scheduled notifications processed", count=len(results))
        return {"processed": len(results), "results": [result.as_dict() for result in results]}
    finally:
        db.close()


@celery_app.task(name="pushadmin.tasks.scheduled.send_notification_now")
def send_notification_now(notification_id: int) -> dict[str, Any]:
    db = SessionLocal()
    try:
        service = build_broadcast_service(db, get_push_sender())
        return service.send_now(notification_id).as_dict()
    finally:
        db.close()
