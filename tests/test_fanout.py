"""Tests for concurrent delivery fan-out."""
from __future__ import annotations

import threading

from pushadmin.core.subscription import PushSubscriptionInfo
from pushadmin.services.fanout import DeliveryJob, deliver_all
from pushadmin.services.push_sender import PushPayload
from tests.conftest import ConcurrencyTrackingSender, StubSender

PAYLOAD = PushPayload(title="Hello", body="World")


def _job(key: int, endpoint: str) -> DeliveryJob:
    return DeliveryJob(key, PushSubscriptionInfo(endpoint=endpoint, keys={"auth": "x"}), PAYLOAD)


class BlockingSender:
    """Never returns until released."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def send(self, subscription, payload) -> None:
        self.release.wait(timeout=5)


def test_outcomes_are_keyed_by_job():
    sender = StubSender()
    sender.fail("https://push.example.com/gone", status_code=410)
    sender.fail("https://push.example.com/busy", status_code=503)

    outcomes = deliver_all(
        sender,
        [
            _job(1, "https://push.example.com/ok"),
            _job(2, "https://push.example.com/gone"),
            _job(3, "https://push.example.com/busy"),
        ],
        deadline_seconds=5,
    )

    assert outcomes[1].ok
    assert not outcomes[2].ok and outcomes[2].permanent_failure
    assert not outcomes[3].ok and not outcomes[3].permanent_failure
    assert outcomes[3].error_message == "push service rejected message"
    assert len(sender.attempts) == 3


def test_empty_batch_returns_nothing():
    assert deliver_all(StubSender(), [], deadline_seconds=1) == {}


def test_deadline_turns_unfinished_jobs_into_failures():
    sender = BlockingSender()
    try:
        outcomes = deliver_all(sender, [_job(1, "https://push.example.com/slow")], deadline_seconds=0.05)
    finally:
        sender.release.set()

    assert outcomes[1].timed_out
    assert not outcomes[1].ok
    assert "deadline" in outcomes[1].error_message


def test_concurrent_sends_never_exceed_worker_cap():
    sender = ConcurrencyTrackingSender()
    jobs = [_job(key, f"https://push.example.com/{key}") for key in range(40)]

    outcomes = deliver_all(sender, jobs, deadline_seconds=10, max_workers=4)

    assert sender.peak <= 4
    assert sender.calls == 40
    assert all(outcome.ok for outcome in outcomes.values())
