"""Engagement event log and the per-notification counters derived from it."""
from __future__ import annotations

from typing import Any

from loguru import logger

from pushadmin.db.models import NotificationEvent, NotificationStats
from pushadmin.db.store import Store
from pushadmin.utils.exceptions import ValidationError, best_effort

EVENT_TYPES = ("sent", "delivered", "open", "click", "dismiss")
# "sent" is only ever recorded by the senders themselves
CLIENT_EVENT_TYPES = ("delivered", "open", "click", "dismiss")
NOTIFICATION_TYPES = ("scheduled", "step")


def _rate(part: int, sent: int) -> float:
    if sent <= 0:
        return 0.0
    return round(part / sent * 100, 2)


class EventStatsAggregator:
    """Appends events and rebuilds ``NotificationStats`` from scratch."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def track_event(
        self,
        notification_id: int,
        event_type: str,
        *,
        notification_type: str = "scheduled",
        user_id: int | None = None,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
        allowed_types: tuple[str, ...] = EVENT_TYPES,
    ) -> NotificationEvent:
        if not notification_id or not event_type:
            raise ValidationError("notification_id and event_type are required")
        if event_type not in allowed_types:
            raise ValidationError(
                "Unsupported event_type",
                details={"event_type": event_type, "allowed": list(allowed_types)},
            )
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationError(
                "Unsupported notification_type",
                details={"notification_type": notification_type},
            )

        event_metadata = dict(metadata or {})
        if event_type == "click":
            event_metadata["url"] = url

        event = self.store.append_event(
            notification_id=notification_id,
            event_type=event_type,
            notification_type=notification_type,
            user_id=user_id,
            metadata=event_metadata,
        )
        logger.debug(
            "Notification event tracked",
            notification_id=notification_id,
            event_type=event_type,
            user_id=user_id,
        )

        with best_effort("stats recompute", notification_id=notification_id):
            self.recompute(notification_id)
        return event

    def compute(self, notification_id: int) -> dict[str, Any]:
        """Counters derived from the event log, without writing them."""

        counts = self.store.count_events(notification_id)
        notification = self.store.find_notification(notification_id)
        sent = counts["sent"]

        fields: dict[str, Any] = {
            "notification_type": "scheduled" if notification is not None else "step",
            "total_sent": sent,
            "total_delivered": counts["delivered"],
            "total_opened": counts["open"],
            "total_clicked": counts["click"],
            "total_dismissed": counts["dismiss"],
            "open_rate": _rate(counts["open"], sent),
            "ctr": _rate(counts["click"], sent),
        }
        if notification is not None and notification.tenant_id is not None:
            fields["tenant_id"] = notification.tenant_id

        return fields

    def recompute(self, notification_id: int) -> NotificationStats:
        """Rebuild every counter from the full event log; idempotent."""

        return self.store.upsert_stats(notification_id, self.compute(notification_id))
