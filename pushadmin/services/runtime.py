"""Wire services to configuration for the HTTP and Celery entry points."""
from __future__ import annotations

from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from pushadmin.config import Settings, get_settings
from pushadmin.db.store import Store
from pushadmin.services.broadcast import BroadcastService
from pushadmin.services.progress_engine import ProgressEngine
from pushadmin.services.push_sender import PushSender, WebPushSender


def get_push_sender(settings: Settings | None = None) -> PushSender:
    """Build a VAPID-configured sender; raises ``ValueError`` when keys are missing."""

    return WebPushSender.from_settings(settings or get_settings())


def build_progress_engine(
    db: Session, sender: PushSender, settings: Settings | None = None
) -> ProgressEngine:
    settings = settings or get_settings()
    return ProgressEngine(
        Store(db),
        sender,
        batch_limit=settings.STEP_SCAN_BATCH_LIMIT,
        deadline_seconds=settings.SCAN_DEADLINE_SECONDS,
        max_workers=settings.PUSH_FANOUT_MAX_WORKERS,
        schedule_tz=ZoneInfo(settings.SCHEDULE_TIMEZONE),
        icon=settings.PUSH_ICON_URL,
    )


def build_broadcast_service(
    db: Session, sender: PushSender, settings: Settings | None = None
) -> BroadcastService:
    settings = settings or get_settings()
    return BroadcastService(
        Store(db),
        sender,
        deadline_seconds=settings.SCAN_DEADLINE_SECONDS,
        max_workers=settings.PUSH_FANOUT_MAX_WORKERS,
        schedule_tz=ZoneInfo(settings.SCHEDULE_TIMEZONE),
        icon=settings.PUSH_ICON_URL,
    )
