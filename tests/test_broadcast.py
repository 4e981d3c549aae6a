"""Tests for scheduled broadcasts."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select

from pushadmin.core.records import ensure_utc
from pushadmin.db.models import NotificationEvent, User, UserSegment
from pushadmin.services.broadcast import BroadcastService, parse_send_at
from pushadmin.utils.exceptions import NotFoundError, ValidationError
from tests.conftest import NOW, ConcurrencyTrackingSender


def _payload(**overrides):
    payload = {
        "title": "Spring sale",
        "body": "Everything is 20% off today",
        "url": "https://shop.example.com/sale",
        "send_at": "2024/03/01 12:00",
        "target_type": "all",
    }
    payload.update(overrides)
    return payload


def _android_segment(db_session) -> UserSegment:
    segment = UserSegment(
        name="Android users",
        filter_conditions={"conditions": [{"field": "device_type", "operator": "eq", "value": "Android"}]},
    )
    db_session.add(segment)
    db_session.commit()
    return segment


# ---------------------------------------------------------------------------
# Parsing and validation
# ---------------------------------------------------------------------------
def test_parse_send_at_accepts_slash_and_iso_formats():
    assert parse_send_at("2024/03/05 09:30") == datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)
    assert parse_send_at("2024-03-05T09:30:00Z") == datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)
    assert parse_send_at("2024/03/05") == datetime(2024, 3, 5, tzinfo=timezone.utc)


def test_parse_send_at_reads_naive_values_in_schedule_timezone():
    result = parse_send_at("2024/03/05 09:00", ZoneInfo("Asia/Tokyo"))

    assert result == datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["tomorrow", "2024/13/40 10:00", "2024/03", "", None])
def test_parse_send_at_rejects_garbage(value):
    with pytest.raises(ValidationError):
        parse_send_at(value)


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": ""},
        {"body": None},
        {"send_at": None},
        {"title": "x" * 101},
        {"body": "x" * 501},
        {"url": "javascript:alert(1)"},
        {"target_type": "everyone"},
        {"target_type": "segment"},
        {"target_type": "custom_filter", "target_filter": {"conditions": [{"field": "shoe_size"}]}},
        {"send_at": "next tuesday"},
    ],
)
def test_create_rejects_invalid_payloads(broadcast, overrides):
    with pytest.raises(ValidationError):
        broadcast.create_notification(_payload(**overrides))


def test_create_rejects_unknown_segment(broadcast):
    with pytest.raises(NotFoundError):
        broadcast.create_notification(_payload(target_type="segment", target_segment_id=999))


def test_create_counts_current_audience(broadcast, make_user, db_session):
    make_user(device_type="Android")
    make_user(device_type="Android")
    make_user(device_type="Windows")
    segment = _android_segment(db_session)

    everyone = broadcast.create_notification(_payload())
    androids = broadcast.create_notification(
        _payload(target_type="segment", target_segment_id=segment.id), created_by="ops@example.com"
    )

    assert everyone.target_user_count == 3
    assert everyone.status == "scheduled"
    assert everyone.sent is False
    assert ensure_utc(everyone.send_at) == NOW
    assert androids.target_user_count == 2
    assert androids.created_by == "ops@example.com"


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------
def test_send_due_delivers_and_records_sent_events(broadcast, make_user, store, sender, db_session):
    first = make_user()
    second = make_user()
    notification = broadcast.create_notification(_payload())

    results = broadcast.send_due()

    assert len(results) == 1
    result = results[0]
    assert (result.status, result.audience, result.success, result.failure) == ("sent", 2, 2, 0)
    assert {endpoint for endpoint, _ in sender.attempts} == {first.endpoint, second.endpoint}
    assert sender.attempts[0][1].notification_type == "scheduled"

    db_session.refresh(notification)
    assert notification.sent is True
    assert notification.status == "sent"
    assert notification.success_count == 2
    events = db_session.scalars(
        select(NotificationEvent).where(NotificationEvent.notification_id == notification.id)
    ).all()
    assert sorted(event.event_type for event in events) == ["sent", "sent"]
    assert store.get_stats(notification.id).total_sent == 2
    assert broadcast.send_due() == []


def test_large_audience_is_sent_through_a_bounded_pool(store, make_user, clock):
    for _ in range(60):
        make_user()
    sender = ConcurrencyTrackingSender()
    service = BroadcastService(store, sender, deadline_seconds=10, max_workers=4, clock=clock)
    service.create_notification(_payload())

    result = service.send_due()[0]

    assert (result.status, result.success) == ("sent", 60)
    assert sender.calls == 60
    assert sender.peak <= 4


def test_future_broadcast_is_not_swept(broadcast, make_user, sender, clock):
    make_user()
    broadcast.create_notification(_payload(send_at="2024/03/02 08:00"))

    assert broadcast.send_due() == []
    assert sender.attempts == []

    clock.advance(days=1)
    assert [result.status for result in broadcast.send_due()] == ["sent"]


def test_empty_audience_is_marked_sent(broadcast, db_session):
    notification = broadcast.create_notification(_payload())

    result = broadcast.send_due()[0]

    db_session.refresh(notification)
    assert (result.status, result.audience) == ("sent", 0)
    assert notification.sent is True
    assert notification.target_user_count == 0


def test_all_failures_mark_broadcast_failed(broadcast, make_user, sender, db_session):
    user = make_user()
    sender.fail(user.endpoint, status_code=500)
    notification = broadcast.create_notification(_payload())

    result = broadcast.send_due()[0]

    db_session.refresh(notification)
    assert (result.status, result.failure) == ("failed", 1)
    assert notification.sent is True
    assert notification.status == "failed"
    assert notification.failure_count == 1


def test_gone_subscriptions_are_pruned(broadcast, make_user, sender, db_session):
    healthy = make_user()
    gone = make_user()
    sender.fail(gone.endpoint, status_code=410)
    broadcast.create_notification(_payload())

    result = broadcast.send_due()[0]

    assert (result.status, result.success, result.failure, result.pruned) == ("sent", 1, 1, 1)
    db_session.expire_all()
    assert db_session.get(User, gone.id) is None
    assert db_session.get(User, healthy.id) is not None


def test_undecodable_subscription_counts_as_failure(broadcast, make_user, sender):
    make_user(raw_subscription="not json")
    make_user()
    broadcast.create_notification(_payload())

    result = broadcast.send_due()[0]

    assert (result.success, result.failure, result.pruned) == (1, 1, 0)
    assert len(sender.attempts) == 1


def test_segment_broadcast_only_reaches_members(broadcast, make_user, sender, db_session):
    android = make_user(device_type="Android")
    make_user(device_type="Windows")
    segment = _android_segment(db_session)
    broadcast.create_notification(_payload(target_type="segment", target_segment_id=segment.id))

    broadcast.send_due()

    assert [endpoint for endpoint, _ in sender.attempts] == [android.endpoint]


def test_custom_filter_is_evaluated_at_send_time(broadcast, make_user, sender, clock):
    user = make_user(created_at=NOW - timedelta(days=5))
    broadcast.create_notification(
        _payload(
            send_at="2024/03/10 12:00",
            target_type="custom_filter",
            target_filter={"conditions": [{"field": "registered_days_ago", "operator": "gte", "value": 7}]},
        )
    )

    clock.advance(days=9)
    broadcast.send_due()

    assert [endpoint for endpoint, _ in sender.attempts] == [user.endpoint]


def test_missing_segment_at_send_time_fails_broadcast(broadcast, make_user, sender, db_session):
    make_user()
    segment = _android_segment(db_session)
    notification = broadcast.create_notification(
        _payload(target_type="segment", target_segment_id=segment.id)
    )
    db_session.delete(segment)
    db_session.commit()

    result = broadcast.send_due()[0]

    db_session.refresh(notification)
    assert result.status == "failed"
    assert notification.sent is True
    assert sender.attempts == []


def test_send_now_ignores_send_at_but_rejects_resend(broadcast, make_user, sender):
    make_user()
    notification = broadcast.create_notification(_payload(send_at="2030/01/01 00:00"))

    result = broadcast.send_now(notification.id)

    assert result.status == "sent"
    assert len(sender.attempts) == 1
    with pytest.raises(ValidationError):
        broadcast.send_now(notification.id)
    with pytest.raises(NotFoundError):
        broadcast.send_now(424242)


def test_sweep_isolates_failing_broadcasts(broadcast, make_user, monkeypatch):
    make_user()
    first = broadcast.create_notification(_payload(send_at="2024/03/01 11:00"))
    second = broadcast.create_notification(_payload(send_at="2024/03/01 11:30"))

    original = broadcast.send_notification

    def flaky(notification, *, now=None):
        if notification.id == first.id:
            raise RuntimeError("push service exploded")
        return original(notification, now=now)

    monkeypatch.setattr(broadcast, "send_notification", flaky)

    results = broadcast.send_due()

    assert [result.notification_id for result in results] == [second.id]
