"""Service layer for step sequence administration."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from loguru import logger

from pushadmin.core.delay_policy import coerce_delay_value, validate_delay
from pushadmin.core.records import ensure_utc
from pushadmin.db.models import StepNotification, StepSequence
from pushadmin.db.store import Store
from pushadmin.utils.exceptions import ValidationError

NAME_MAX_LENGTH = 200
STEP_TITLE_MAX_LENGTH = 100
STEP_BODY_MAX_LENGTH = 500
UPCOMING_PREVIEW_SIZE = 10


def validate_steps(steps: Any) -> list[dict[str, Any]]:
    """Return normalised step rows or raise ``ValidationError``.

    Orders must be unique and run 1..n without gaps; a gap would end
    the sequence early because a missing next step means completion.
    """

    if not isinstance(steps, list) or not steps:
        raise ValidationError("name and steps (array) are required")

    rows: list[dict[str, Any]] = []
    for step in steps:
        if not isinstance(step, dict):
            raise ValidationError("Each step must be an object")
        if not step.get("title") or not step.get("body") or not step.get("delay_type") or step.get("step_order") is None:
            raise ValidationError("Each step must have title, body, delay_type, and step_order")
        if len(step["title"]) > STEP_TITLE_MAX_LENGTH:
            raise ValidationError(f"Step title too long (max {STEP_TITLE_MAX_LENGTH})")
        if len(step["body"]) > STEP_BODY_MAX_LENGTH:
            raise ValidationError(f"Step body too long (max {STEP_BODY_MAX_LENGTH})")
        validate_delay(step["delay_type"], step.get("delay_value"), step.get("scheduled_time"))
        try:
            order = int(step["step_order"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("step_order must be an integer") from exc

        rows.append(
            {
                "step_order": order,
                "title": step["title"],
                "body": step["body"],
                "url": step.get("url") or "",
                "delay_type": step["delay_type"],
                "delay_value": int(coerce_delay_value(step.get("delay_value"))),
                "scheduled_time": step.get("scheduled_time") or None,
            }
        )

    orders = sorted(row["step_order"] for row in rows)
    if orders != list(range(1, len(rows) + 1)):
        raise ValidationError(
            "step_order values must be unique and run from 1 without gaps",
            details={"step_orders": orders},
        )
    return sorted(rows, key=lambda row: row["step_order"])


class StepSequenceService:
    def __init__(self, store: Store):
        self.store = store

    def create(
        self, payload: dict[str, Any], *, tenant_id: int | None = None
    ) -> tuple[StepSequence, list[StepNotification]]:
        name = payload.get("name")
        if not name:
            raise ValidationError("name and steps (array) are required")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f"Name too long (max {NAME_MAX_LENGTH})")
        steps = validate_steps(payload.get("steps"))

        is_active = payload.get("is_active")
        sequence, rows = self.store.create_sequence_with_steps(
            {
                "tenant_id": tenant_id,
                "name": name,
                "description": payload.get("description") or "",
                "is_active": True if is_active is None else bool(is_active),
            },
            steps,
        )
        logger.info(
            "Step sequence created",
            sequence_id=sequence.id,
            tenant_id=tenant_id,
            steps=len(rows),
        )
        return sequence, rows

    def list(self, *, tenant_id: int | None = None) -> list[StepSequence]:
        return self.store.list_sequences(tenant_id)

    def toggle(self, sequence_id: int, is_active: bool | None = None) -> StepSequence:
        """Flip ``is_active``, or set it explicitly when a value is given."""

        sequence = self.store.get_sequence(sequence_id)
        target = (not sequence.is_active) if is_active is None else bool(is_active)
        sequence = self.store.set_sequence_active(sequence_id, target)
        logger.info("Step sequence toggled", sequence_id=sequence_id, is_active=target)
        return sequence

    def delete(self, sequence_id: int) -> None:
        self.store.delete_sequence(sequence_id)
        logger.info("Step sequence deleted", sequence_id=sequence_id)

    def status(self, *, tenant_id: int | None = None, now: datetime | None = None) -> dict[str, Any]:
        """Overdue and upcoming incomplete progress rows, plus totals."""

        now = now or datetime.now(timezone.utc)
        overdue: list[dict[str, Any]] = []
        upcoming: list[dict[str, Any]] = []
        for row, sequence_name in self.store.progress_overview(tenant_id):
            due_at = ensure_utc(row.next_notification_at)
            item = {
                "id": str(row.id),
                "user_id": row.user_id,
                "sequence_name": sequence_name,
                "current_step": row.current_step,
                "next_notification_at": due_at.isoformat() if due_at else None,
            }
            if due_at is not None and due_at <= now:
                overdue.append(item)
            else:
                upcoming.append(item)

        return {
            "stats": {
                "total": len(overdue) + len(upcoming),
                "overdue": len(overdue),
                "upcoming": len(upcoming),
                "completed": self.store.count_completed_progress(tenant_id),
            },
            "overdue": overdue,
            "upcoming": upcoming[:UPCOMING_PREVIEW_SIZE],
        }
