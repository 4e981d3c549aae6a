"""One-shot scheduled broadcasts to all users, a segment or an ad-hoc filter."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable
from urllib.parse import urlparse

from loguru import logger
from sqlalchemy import ColumnElement

from pushadmin.core.filters import build_user_filters, validate_filter_conditions
from pushadmin.core.subscription import decode_subscription
from pushadmin.db.models import Notification
from pushadmin.db.store import Store
from pushadmin.services.event_stats import EventStatsAggregator
from pushadmin.services.fanout import DeliveryJob, deliver_all
from pushadmin.services.push_sender import PushPayload, PushSender
from pushadmin.utils.exceptions import (
    InvalidSubscriptionError,
    NotFoundError,
    ValidationError,
    best_effort,
)

TARGET_TYPES = ("all", "segment", "custom_filter")
TITLE_MAX_LENGTH = 100
BODY_MAX_LENGTH = 500


@dataclass(slots=True)
class BroadcastResult:
    notification_id: int
    status: str
    audience: int = 0
    success: int = 0
    failure: int = 0
    pruned: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_slash_format(value: str) -> datetime:
    date_part, _, time_part = value.strip().partition(" ")
    pieces = date_part.split("/")
    if len(pieces) != 3:
        raise ValueError("expected YYYY/MM/DD")
    hour, _, minute = (time_part.strip() or "00:00").partition(":")
    year, month, day = (int(piece) for piece in pieces)
    return datetime(year, month, day, int(hour or 0), int(minute or 0))


def parse_send_at(value: Any, tz: tzinfo = timezone.utc) -> datetime:
    """Accept ISO-8601 or ``YYYY/MM/DD HH:mm``; naive values are read in ``tz``."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            if "/" in value:
                parsed = _parse_slash_format(value)
            else:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                "Invalid date format. Please use YYYY/MM/DD HH:mm format",
                details={"send_at": value, "error": str(exc)},
            ) from exc
    else:
        raise ValidationError("send_at is required")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def validate_http_url(url: str | None) -> None:
    if not url:
        return
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("URL must be an absolute http or https URL", details={"url": url})


class BroadcastService:
    """Creates broadcasts and pushes them to their audience once due."""

    def __init__(
        self,
        store: Store,
        sender: PushSender,
        *,
        deadline_seconds: float = 50.0,
        max_workers: int = 32,
        schedule_tz: tzinfo = timezone.utc,
        icon: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.sender = sender
        self.deadline_seconds = deadline_seconds
        self.max_workers = max_workers
        self.schedule_tz = schedule_tz
        self.icon = icon
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Audience
    # ------------------------------------------------------------------
    def audience_clauses(
        self,
        *,
        target_type: str,
        tenant_id: int | None,
        now: datetime,
        target_segment_id: int | None = None,
        target_filter: Any = None,
    ) -> list[ColumnElement[bool]]:
        if target_type == "segment":
            if target_segment_id is None:
                raise NotFoundError("Target segment is missing")
            segment = self.store.get_segment(target_segment_id, tenant_id)
            return build_user_filters(segment.filter_conditions, tenant_id=tenant_id, now=now)
        if target_type == "custom_filter":
            return build_user_filters(target_filter, tenant_id=tenant_id, now=now)
        return build_user_filters(None, tenant_id=tenant_id, now=now)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_notification(
        self,
        payload: dict[str, Any],
        *,
        tenant_id: int | None = None,
        created_by: str | None = None,
        now: datetime | None = None,
    ) -> Notification:
        """Validate, count the current audience and store a ``scheduled`` broadcast."""

        now = now or self.now()
        title = payload.get("title")
        body = payload.get("body")
        url = payload.get("url") or ""
        target_type = payload.get("target_type") or "all"
        target_segment_id = payload.get("target_segment_id")
        target_filter = payload.get("target_filter")

        if not title or not body or not payload.get("send_at"):
            raise ValidationError("title, body, send_at are required")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(f"Title too long (max {TITLE_MAX_LENGTH})")
        if len(body) > BODY_MAX_LENGTH:
            raise ValidationError(f"Body too long (max {BODY_MAX_LENGTH})")
        validate_http_url(url)
        if target_type not in TARGET_TYPES:
            raise ValidationError(
                "Invalid target_type", details={"target_type": target_type, "allowed": list(TARGET_TYPES)}
            )
        if target_type == "segment" and target_segment_id is None:
            raise ValidationError("target_segment_id is required for segment targets")
        if target_type == "custom_filter":
            validate_filter_conditions(target_filter)
        send_at = parse_send_at(payload.get("send_at"), self.schedule_tz)

        clauses = self.audience_clauses(
            target_type=target_type,
            tenant_id=tenant_id,
            now=now,
            target_segment_id=target_segment_id,
            target_filter=target_filter,
        )
        notification = Notification(
            tenant_id=tenant_id,
            title=title,
            body=body,
            url=url,
            send_at=send_at,
            target_type=target_type,
            target_segment_id=target_segment_id if target_type == "segment" else None,
            target_filter=target_filter if target_type == "custom_filter" else None,
            target_user_count=self.store.count_users(clauses),
            sent=False,
            status="scheduled",
            created_by=(created_by or "")[:200] or None,
        )
        self.store.save_notification(notification)
        logger.info(
            "Notification scheduled",
            notification_id=notification.id,
            send_at=send_at.isoformat(),
            target_type=target_type,
            target_user_count=notification.target_user_count,
        )
        return notification

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    def _payload(self, notification: Notification) -> PushPayload:
        return PushPayload(
            title=notification.title,
            body=notification.body,
            url=notification.url or "/",
            icon=self.icon,
            badge=self.icon,
            notification_id=notification.id,
            notification_type="scheduled",
        )

    def _finish(self, notification: Notification, result: BroadcastResult, now: datetime) -> BroadcastResult:
        if result.audience == 0:
            result.status = "sent"
            notification.target_user_count = 0
        elif result.success > 0:
            result.status = "sent"
        else:
            # nobody reachable; still marked sent so the sweep moves on
            result.status = "failed"
        notification.mark_finished(
            status=result.status,
            success=result.success,
            failure=result.failure,
            sent_at=now,
        )
        self.store.commit()
        logger.info("Notification send finished", **result.as_dict())
        return result

    def send_notification(self, notification: Notification, *, now: datetime | None = None) -> BroadcastResult:
        now = now or self.now()
        result = BroadcastResult(notification_id=notification.id, status="sending")

        try:
            clauses = self.audience_clauses(
                target_type=notification.target_type,
                tenant_id=notification.tenant_id,
                now=now,
                target_segment_id=notification.target_segment_id,
                target_filter=notification.target_filter,
            )
        except NotFoundError as exc:
            logger.error(
                "Notification audience unavailable",
                notification_id=notification.id,
                error=exc.message,
            )
            result.status = "failed"
            notification.mark_finished(status="failed", success=0, failure=0, sent_at=now)
            self.store.commit()
            return result

        targets = self.store.list_user_targets(clauses)
        result.audience = len(targets)
        if not targets:
            return self._finish(notification, result, now)

        payload = self._payload(notification)
        jobs: list[DeliveryJob] = []
        for user_id, raw in targets:
            try:
                jobs.append(DeliveryJob(user_id, decode_subscription(raw), payload))
            except InvalidSubscriptionError as exc:
                result.failure += 1
                logger.warning("Skipping undecodable subscription", user_id=user_id, error=exc.message)

        outcomes = deliver_all(
            self.sender, jobs, deadline_seconds=self.deadline_seconds, max_workers=self.max_workers
        )
        for user_id, outcome in outcomes.items():
            if outcome.ok:
                result.success += 1
                with best_effort("sent event", notification_id=notification.id, user_id=user_id):
                    self.store.append_event(
                        notification_id=notification.id,
                        event_type="sent",
                        notification_type="scheduled",
                        user_id=user_id,
                    )
                continue

            result.failure += 1
            if outcome.permanent_failure:
                with best_effort("prune subscription", user_id=user_id):
                    self.store.delete_user(user_id)
                    result.pruned += 1
                    logger.info("Expired subscription removed", user_id=user_id)

        if result.success:
            with best_effort("stats recompute", notification_id=notification.id):
                EventStatsAggregator(self.store).recompute(notification.id)
        return self._finish(notification, result, now)

    def send_now(self, notification_id: int, *, now: datetime | None = None) -> BroadcastResult:
        """Manual trigger for a single broadcast regardless of its send_at."""

        notification = self.store.get_notification(notification_id)
        if notification.sent:
            raise ValidationError(
                "Notification has already been sent", details={"notification_id": notification_id}
            )
        return self.send_notification(notification, now=now)

    def send_due(self, *, now: datetime | None = None, tenant_id: int | None = None) -> list[BroadcastResult]:
        """Sweep unsent broadcasts whose send_at has passed, oldest first."""

        now = now or self.now()
        due = self.store.due_notifications(now, tenant_id)
        if not due:
            logger.info("No pending notifications")
            return []

        results: list[BroadcastResult] = []
        for notification in due:
            try:
                results.append(self.send_notification(notification, now=now))
            except Exception as exc:
                self.store.rollback()
                logger.error(
                    "Notification send failed",
                    notification_id=notification.id,
                    error=str(exc),
                )
        logger.info("Scheduled sweep finished", due=len(due), processed=len(results))
        return results
