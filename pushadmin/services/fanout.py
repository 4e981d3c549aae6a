"""Concurrent push fan-out with a wall-clock deadline for the whole batch."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Hashable

from loguru import logger

from pushadmin.core.subscription import PushSubscriptionInfo
from pushadmin.services.push_sender import PushPayload, PushSender
from pushadmin.utils.exceptions import DeliveryError


@dataclass(frozen=True, slots=True)
class DeliveryJob:
    key: Hashable
    subscription: PushSubscriptionInfo
    payload: PushPayload


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    key: Hashable
    error: Exception | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def permanent_failure(self) -> bool:
        return isinstance(self.error, DeliveryError) and self.error.permanent

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error) or type(self.error).__name__


def _attempt(sender: PushSender, job: DeliveryJob) -> DeliveryOutcome:
    try:
        sender.send(job.subscription, job.payload)
    except Exception as exc:  # any transport failure is recorded on the outcome
        return DeliveryOutcome(job.key, error=exc)
    return DeliveryOutcome(job.key)


def deliver_all(
    sender: PushSender,
    jobs: list[DeliveryJob],
    *,
    deadline_seconds: float,
    max_workers: int = 32,
) -> dict[Any, DeliveryOutcome]:
    """Send every job concurrently and join before returning.

    At most ``max_workers`` sends are in flight at once. Jobs still running
    or still queued at the deadline come back as timed-out failures; queued
    ones are cancelled and running threads are abandoned rather than waited on.
    """

    if not jobs:
        return {}

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(len(jobs), max_workers)), thread_name_prefix="push-fanout"
    )
    try:
        futures = {executor.submit(_attempt, sender, job): job for job in jobs}
        done, pending = wait(futures, timeout=deadline_seconds)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    outcomes: dict[Any, DeliveryOutcome] = {}
    for future, job in futures.items():
        if future in done:
            outcomes[job.key] = future.result()
        else:
            outcomes[job.key] = DeliveryOutcome(
                job.key,
                error=DeliveryError("Delivery did not finish before the batch deadline"),
                timed_out=True,
            )
    if pending:
        logger.warning(
            "Push fan-out hit batch deadline",
            pending=len(pending),
            total=len(jobs),
            deadline_seconds=deadline_seconds,
        )
    return outcomes
