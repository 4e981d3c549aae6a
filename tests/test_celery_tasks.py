"""Tests for Celery background tasks."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from pushadmin.celery_app import celery_app
from pushadmin.db.models import Notification, UserStepProgress
from pushadmin.db.store import Store
from pushadmin.tasks.scheduled import send_notification_now, send_scheduled_notifications
from pushadmin.tasks.step_notifications import run_step_notifications
from tests.conftest import NOW


@pytest.fixture()
def task_session_factory(db_session):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=db_session.bind)
    sessions: list = []

    def create_session():
        session = factory()
        sessions.append(session)
        return session

    try:
        yield create_session
    finally:
        for session in sessions:
            session.close()


def _broadcast(db_session, send_at=NOW) -> Notification:
    notification = Notification(title="Hello", body="World", url="", send_at=send_at, target_type="all")
    db_session.add(notification)
    db_session.commit()
    return notification


def test_beat_schedule_registers_both_triggers():
    schedule = celery_app.conf.beat_schedule

    assert schedule["run-step-notifications"]["task"] == run_step_notifications.name
    assert schedule["send-scheduled-notifications"]["task"] == send_scheduled_notifications.name


def test_run_step_notifications(db_session, task_session_factory, make_user, make_sequence, store, sender):
    sequence = make_sequence([{"delay_type": "immediate"}])
    user = make_user()
    store.create_progress(user.id, sequence.id, NOW - timedelta(minutes=1))

    with patch("pushadmin.tasks.step_notifications.SessionLocal", side_effect=task_session_factory), patch(
        "pushadmin.tasks.step_notifications.get_push_sender", return_value=sender
    ):
        result = run_step_notifications.run()

    assert result["selected"] == 1
    assert result["sent"] == 1
    assert result["completed"] == 1
    db_session.expire_all()
    assert db_session.query(UserStepProgress).one().completed is True


def test_run_step_notifications_propagates_query_failure(task_session_factory, sender, monkeypatch):
    def broken_query(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database unavailable"))

    monkeypatch.setattr(Store, "query_due_progress", broken_query)

    with patch("pushadmin.tasks.step_notifications.SessionLocal", side_effect=task_session_factory), patch(
        "pushadmin.tasks.step_notifications.get_push_sender", return_value=sender
    ):
        with pytest.raises(OperationalError):
            run_step_notifications.run()


def test_send_scheduled_notifications(db_session, task_session_factory, make_user, sender):
    make_user()
    notification = _broadcast(db_session)

    with patch("pushadmin.tasks.scheduled.SessionLocal", side_effect=task_session_factory), patch(
        "pushadmin.tasks.scheduled.get_push_sender", return_value=sender
    ):
        result = send_scheduled_notifications.run()

    assert result["processed"] == 1
    assert result["results"][0]["notification_id"] == notification.id
    assert result["results"][0]["success"] == 1
    db_session.refresh(notification)
    assert notification.sent is True


def test_send_notification_now(db_session, task_session_factory, make_user, sender):
    make_user()
    notification = _broadcast(db_session, send_at=NOW + timedelta(days=3650))

    with patch("pushadmin.tasks.scheduled.SessionLocal", side_effect=task_session_factory), patch(
        "pushadmin.tasks.scheduled.get_push_sender", return_value=sender
    ):
        result = send_notification_now.run(notification.id)

    assert result["status"] == "sent"
    assert len(sender.attempts) == 1
