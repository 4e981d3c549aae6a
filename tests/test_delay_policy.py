"""Tests for next-fire computation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from pushadmin.core.delay_policy import (
    compute_next_notification_at,
    parse_scheduled_time,
    validate_delay,
)
from pushadmin.core.records import Step
from pushadmin.services.progress_engine import ProgressEngine
from pushadmin.utils.exceptions import ValidationError

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def _step(delay_type: str, delay_value: int = 0, scheduled_time: str | None = None) -> Step:
    return Step(
        id=1,
        sequence_id=1,
        step_order=1,
        title="Hi",
        body="Body",
        url="",
        delay_type=delay_type,
        delay_value=delay_value,
        scheduled_time=scheduled_time,
    )


@pytest.mark.parametrize(
    ("delay_type", "value", "expected"),
    [
        ("minutes", 15, NOW + timedelta(minutes=15)),
        ("hours", 2, NOW + timedelta(hours=2)),
        ("days", 3, NOW + timedelta(days=3)),
        ("immediate", 99, NOW),
    ],
)
def test_relative_delays(delay_type, value, expected):
    assert compute_next_notification_at(delay_type, value, None, NOW) == expected


def test_hours_delay_keeps_sub_second_precision():
    now = datetime(2024, 3, 1, 10, 17, 42, 123456, tzinfo=timezone.utc)

    result = compute_next_notification_at("hours", 3, None, now)

    assert result == datetime(2024, 3, 1, 13, 17, 42, 123456, tzinfo=timezone.utc)


def test_scheduled_time_later_today_fires_today():
    result = compute_next_notification_at("scheduled", None, "11:30:00", NOW)

    assert result == datetime(2024, 3, 1, 11, 30, tzinfo=timezone.utc)


def test_scheduled_time_already_passed_rolls_to_tomorrow():
    result = compute_next_notification_at("scheduled", None, "09:00:00", NOW)

    assert result == datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)


def test_scheduled_time_equal_to_now_rolls_to_tomorrow():
    result = compute_next_notification_at("scheduled", None, "10:00", NOW)

    assert result == datetime(2024, 3, 2, 10, 0, tzinfo=timezone.utc)


def test_scheduled_without_time_fires_now():
    assert compute_next_notification_at("scheduled", None, None, NOW) == NOW
    assert compute_next_notification_at("scheduled", None, "not-a-time", NOW) == NOW


def test_unknown_type_and_bad_values_fire_now():
    assert compute_next_notification_at("weeks", 2, None, NOW) == NOW
    assert compute_next_notification_at(None, None, None, NOW) == NOW
    assert compute_next_notification_at("hours", "abc", None, NOW) == NOW
    assert compute_next_notification_at("minutes", None, None, NOW) == NOW


def test_parse_scheduled_time_formats():
    assert parse_scheduled_time("07:05").hour == 7
    assert parse_scheduled_time("07:05:09").second == 9
    assert parse_scheduled_time("25:00") is None
    assert parse_scheduled_time("") is None


def test_validate_delay_rejects_bad_input():
    with pytest.raises(ValidationError):
        validate_delay("weeks", 1, None)
    with pytest.raises(ValidationError):
        validate_delay("hours", -1, None)
    with pytest.raises(ValidationError):
        validate_delay("scheduled", None, None)

    validate_delay("scheduled", None, "09:00:00")
    validate_delay("immediate", None, None)


def test_engine_evaluates_scheduled_steps_on_configured_wall_clock(store, sender):
    engine = ProgressEngine(store, sender, schedule_tz=ZoneInfo("Asia/Tokyo"))
    # 00:30 UTC is 09:30 in Tokyo, so 09:00 local has passed
    now = datetime(2024, 3, 1, 0, 30, tzinfo=timezone.utc)

    result = engine.next_fire(_step("scheduled", scheduled_time="09:00:00"), now)

    assert result == datetime(2024, 3, 2, 0, 0, tzinfo=timezone.utc)
    assert result.tzinfo == timezone.utc
