"""Tests for step sequence administration."""
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from pushadmin.db.models import StepNotification, StepSequence
from pushadmin.services.step_sequences import StepSequenceService, validate_steps
from pushadmin.utils.exceptions import NotFoundError, SequenceCreationError, ValidationError
from tests.conftest import NOW


@pytest.fixture()
def service(store) -> StepSequenceService:
    return StepSequenceService(store)


def _step(order: int, **overrides):
    step = {
        "step_order": order,
        "title": f"Step {order}",
        "body": "Come back and finish setting up",
        "delay_type": "hours",
        "delay_value": 24,
    }
    step.update(overrides)
    return step


def test_create_stores_steps_in_order(service, db_session):
    sequence, steps = service.create(
        {
            "name": "Onboarding",
            "description": "First week",
            "steps": [_step(2, delay_type="scheduled", scheduled_time="09:00:00"), _step(1)],
        }
    )

    assert sequence.is_active is True
    assert [step.step_order for step in steps] == [1, 2]
    stored = db_session.scalars(
        select(StepNotification).where(StepNotification.sequence_id == sequence.id).order_by(StepNotification.step_order)
    ).all()
    assert [step.delay_type for step in stored] == ["hours", "scheduled"]
    assert stored[1].scheduled_time == "09:00:00"


def test_delay_value_strings_are_coerced(service):
    _, steps = service.create({"name": "Drip", "steps": [_step(1, delay_value="30", delay_type="minutes")]})

    assert steps[0].delay_value == 30


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"steps": [_step(1)]}, "name and steps (array) are required"),
        ({"name": "Drip", "steps": []}, "name and steps (array) are required"),
        ({"name": "Drip", "steps": "nope"}, "name and steps (array) are required"),
        ({"name": "Drip", "steps": [_step(1, title="")]}, "Each step must have title, body, delay_type, and step_order"),
        ({"name": "Drip", "steps": [_step(1, title="x" * 101)]}, "Step title too long (max 100)"),
        ({"name": "Drip", "steps": [_step(1, body="x" * 501)]}, "Step body too long (max 500)"),
        ({"name": "x" * 201, "steps": [_step(1)]}, "Name too long (max 200)"),
    ],
)
def test_create_rejects_invalid_payloads(service, db_session, payload, message):
    with pytest.raises(ValidationError) as excinfo:
        service.create(payload)

    assert excinfo.value.message == message
    assert db_session.scalar(select(func.count(StepSequence.id))) == 0


@pytest.mark.parametrize(
    "steps",
    [
        [_step(1), _step(1)],
        [_step(1), _step(3)],
        [_step(2)],
        [_step(1, delay_type="weeks")],
        [_step(1, delay_type="scheduled", scheduled_time=None)],
        [_step(1, delay_value=-5)],
    ],
)
def test_validate_steps_rejects_bad_orders_and_delays(steps):
    with pytest.raises(ValidationError):
        validate_steps(steps)


def test_failed_step_insert_removes_sequence(store, db_session):
    rows = [_step(1), _step(1)]
    for row in rows:
        row.setdefault("url", "")
        row.setdefault("scheduled_time", None)

    with pytest.raises(SequenceCreationError):
        store.create_sequence_with_steps({"name": "Broken", "description": "", "is_active": True}, rows)

    assert db_session.scalar(select(func.count(StepSequence.id))) == 0
    assert db_session.scalar(select(func.count(StepNotification.id))) == 0


def test_toggle_flips_or_sets_state(service, make_sequence):
    sequence = make_sequence([{"delay_type": "immediate"}])

    assert service.toggle(sequence.id).is_active is False
    assert service.toggle(sequence.id).is_active is True
    assert service.toggle(sequence.id, is_active=True).is_active is True
    assert service.toggle(sequence.id, is_active=False).is_active is False
    with pytest.raises(NotFoundError):
        service.toggle(9999)


def test_paused_sequence_is_skipped_for_new_users(service, engine, make_sequence, make_user):
    sequence = make_sequence([{"delay_type": "immediate"}])
    service.toggle(sequence.id)

    result = engine.enroll_user(make_user().id, None)

    assert result.enrolled_sequence_ids == []


def test_delete_cascades_steps_and_progress(service, engine, make_sequence, make_user, db_session):
    sequence = make_sequence([{"delay_type": "hours", "delay_value": 1}, {"delay_type": "immediate"}])
    engine.enroll_user(make_user().id, None)

    service.delete(sequence.id)

    db_session.expire_all()
    assert db_session.get(StepSequence, sequence.id) is None
    assert db_session.scalar(select(func.count(StepNotification.id))) == 0
    assert service.status(now=NOW)["stats"]["total"] == 0
    with pytest.raises(NotFoundError):
        service.delete(sequence.id)


def test_list_returns_newest_first(service, make_sequence):
    first = make_sequence([{"delay_type": "immediate"}], name="First")
    second = make_sequence([{"delay_type": "immediate"}], name="Second")

    assert [sequence.id for sequence in service.list()] == [second.id, first.id]


def test_status_splits_overdue_and_upcoming(service, store, make_sequence, make_user):
    sequence = make_sequence([{"delay_type": "immediate"}])
    overdue_user = make_user()
    upcoming_user = make_user()
    done_user = make_user()
    store.create_progress(overdue_user.id, sequence.id, NOW - timedelta(minutes=5))
    store.create_progress(upcoming_user.id, sequence.id, NOW + timedelta(hours=2))
    done = store.create_progress(done_user.id, sequence.id, NOW - timedelta(days=1))
    store.update_progress(done.id, completed=True)

    status = service.status(now=NOW)

    assert status["stats"] == {"total": 2, "overdue": 1, "upcoming": 1, "completed": 1}
    assert status["overdue"][0]["user_id"] == overdue_user.id
    assert status["overdue"][0]["sequence_name"] == "Onboarding"
    assert status["upcoming"][0]["user_id"] == upcoming_user.id
