"""Validated, immutable records handed from the store to the engines."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pushadmin.utils.exceptions import ValidationError

DELAY_TYPES = ("immediate", "minutes", "hours", "days", "scheduled")


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on read)."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _require(row: Any, *fields: str) -> None:
    missing = [name for name in fields if getattr(row, name, None) is None]
    if missing:
        raise ValidationError(
            f"{type(row).__name__} is missing required fields",
            details={"missing": missing},
        )


@dataclass(frozen=True, slots=True)
class Step:
    id: int
    sequence_id: int
    step_order: int
    title: str
    body: str
    url: str
    delay_type: str
    delay_value: int
    scheduled_time: str | None

    @classmethod
    def from_row(cls, row: Any) -> "Step":
        _require(row, "id", "sequence_id", "step_order", "title", "body", "delay_type")
        if row.step_order < 1:
            raise ValidationError("step_order must be 1-based", details={"step_id": row.id})
        return cls(
            id=row.id,
            sequence_id=row.sequence_id,
            step_order=row.step_order,
            title=row.title,
            body=row.body,
            url=row.url or "",
            delay_type=row.delay_type,
            delay_value=row.delay_value or 0,
            scheduled_time=row.scheduled_time,
        )


@dataclass(frozen=True, slots=True)
class Sequence:
    id: int
    name: str
    is_active: bool
    tenant_id: int | None

    @classmethod
    def from_row(cls, row: Any) -> "Sequence":
        _require(row, "id", "name")
        return cls(
            id=row.id,
            name=row.name,
            is_active=bool(row.is_active),
            tenant_id=row.tenant_id,
        )


@dataclass(frozen=True, slots=True)
class Progress:
    """Snapshot of a ``UserStepProgress`` row plus the owner's subscription."""

    id: UUID
    user_id: int
    sequence_id: int
    current_step: int
    next_notification_at: datetime | None
    completed: bool
    subscription: str | None = None

    @classmethod
    def from_row(cls, row: Any, subscription: str | None = None) -> "Progress":
        _require(row, "id", "user_id", "sequence_id", "current_step")
        if row.current_step < 0:
            raise ValidationError("current_step cannot be negative", details={"progress_id": str(row.id)})
        return cls(
            id=row.id,
            user_id=row.user_id,
            sequence_id=row.sequence_id,
            current_step=row.current_step,
            next_notification_at=ensure_utc(row.next_notification_at),
            completed=bool(row.completed),
            subscription=subscription,
        )

    @property
    def next_step_order(self) -> int:
        return self.current_step + 1
