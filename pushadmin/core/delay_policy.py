"""Delay policies that turn a step's timing settings into a next-fire timestamp.

Every function here is pure: the current instant is always passed in, so
callers (and tests) control the clock. Timing problems never block a
sequence; anything the policy cannot interpret fires "now".
"""
from __future__ import annotations

import math
from datetime import datetime, time, timedelta
from typing import Any

from pushadmin.core.records import DELAY_TYPES, Step
from pushadmin.utils.exceptions import ValidationError

_UNITS = {
    "minutes": timedelta(minutes=1),
    "hours": timedelta(hours=1),
    "days": timedelta(days=1),
}


def coerce_delay_value(value: Any) -> float:
    """Return ``value`` as a number, or 0 when missing or not a number."""

    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return number


def parse_scheduled_time(value: str | None) -> time | None:
    """Parse ``HH:MM`` or ``HH:MM:SS``; ``None`` if absent or malformed."""

    if not value:
        return None
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
        second = int(parts[2]) if len(parts) == 3 else 0
        return time(hour, minute, second)
    except ValueError:
        return None


def compute_next_notification_at(
    delay_type: str | None,
    delay_value: Any,
    scheduled_time: str | None,
    now: datetime,
) -> datetime:
    """Map a delay setting to an absolute timestamp relative to ``now``.

    ``scheduled`` uses the wall clock of ``now``'s timezone: today's
    occurrence if it is still ahead, otherwise the same time tomorrow.
    """

    unit = _UNITS.get(delay_type or "")
    if unit is not None:
        return now + unit * coerce_delay_value(delay_value)

    if delay_type == "scheduled":
        at = parse_scheduled_time(scheduled_time)
        if at is None:
            return now
        candidate = now.replace(hour=at.hour, minute=at.minute, second=at.second, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    # immediate and unknown types
    return now


def next_fire_for(step: Step, now: datetime) -> datetime:
    return compute_next_notification_at(step.delay_type, step.delay_value, step.scheduled_time, now)


def validate_delay(delay_type: str | None, delay_value: Any, scheduled_time: str | None) -> None:
    """Strict check used when steps are created; the engine never calls this."""

    if delay_type not in DELAY_TYPES:
        raise ValidationError(
            "Invalid delay_type",
            details={"delay_type": delay_type, "allowed": list(DELAY_TYPES)},
        )
    if delay_value is not None and coerce_delay_value(delay_value) < 0:
        raise ValidationError("delay_value cannot be negative", details={"delay_value": delay_value})
    if delay_type == "scheduled" and parse_scheduled_time(scheduled_time) is None:
        raise ValidationError(
            'scheduled_time (HH:MM:SS) is required when delay_type is "scheduled"',
            details={"scheduled_time": scheduled_time},
        )
