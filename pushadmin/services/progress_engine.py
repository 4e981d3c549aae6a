"""Step-sequence delivery engine.

Each ``UserStepProgress`` row is a small state machine::

    NOT_STARTED (current_step=0) -> AT_STEP[n] -> COMPLETED

A periodic trigger calls :meth:`ProgressEngine.run_due`, which selects the
due rows once, delivers the next step of each row concurrently, and then
writes every row's transition on its own. A failed delivery leaves the row
exactly as it was, so the next scan selects it again; that re-selection is
the only retry mechanism (no attempt cap, no backoff). Overlapping scans
are not locked against each other and may deliver a step twice.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone, tzinfo
from typing import Callable

from loguru import logger

from pushadmin.core.delay_policy import next_fire_for
from pushadmin.core.records import Progress, Step
from pushadmin.core.subscription import decode_subscription
from pushadmin.db.store import Store
from pushadmin.services.fanout import DeliveryJob, DeliveryOutcome, deliver_all
from pushadmin.services.push_sender import PushPayload, PushSender
from pushadmin.utils.exceptions import InvalidSubscriptionError, best_effort


@dataclass(slots=True)
class ScanResult:
    """Counters for one scan invocation."""

    selected: int = 0
    sent: int = 0
    failed: int = 0
    completed: int = 0
    timed_out: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(slots=True)
class EnrollmentResult:
    enrolled_sequence_ids: list[int] = field(default_factory=list)
    immediate_sent: int = 0
    immediate_failed: int = 0


class ProgressEngine:
    """Enrolls users into sequences and advances their progress rows."""

    def __init__(
        self,
        store: Store,
        sender: PushSender,
        *,
        batch_limit: int = 100,
        deadline_seconds: float = 50.0,
        max_workers: int = 32,
        schedule_tz: tzinfo = timezone.utc,
        icon: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.sender = sender
        self.batch_limit = batch_limit
        self.deadline_seconds = deadline_seconds
        self.max_workers = max_workers
        self.schedule_tz = schedule_tz
        self.icon = icon
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def now(self) -> datetime:
        return self._clock()

    def next_fire(self, step: Step, now: datetime) -> datetime:
        """Delay policy evaluated on the configured wall clock, stored as UTC."""

        return next_fire_for(step, now.astimezone(self.schedule_tz)).astimezone(timezone.utc)

    def _payload(self, step: Step) -> PushPayload:
        return PushPayload(
            title=step.title,
            body=step.body,
            url=step.url or "/",
            icon=self.icon,
            badge=self.icon,
            notification_id=step.id,
            notification_type="step",
        )

    def _deliver(self, plans: list[tuple[Progress, Step]]) -> dict[object, DeliveryOutcome]:
        """Fan out the planned deliveries; undecodable subscriptions fail without sending."""

        outcomes: dict[object, DeliveryOutcome] = {}
        jobs: list[DeliveryJob] = []
        for progress, step in plans:
            try:
                subscription = decode_subscription(progress.subscription)
            except InvalidSubscriptionError as exc:
                outcomes[progress.id] = DeliveryOutcome(progress.id, error=exc)
                continue
            jobs.append(DeliveryJob(progress.id, subscription, self._payload(step)))
        outcomes.update(
            deliver_all(
                self.sender,
                jobs,
                deadline_seconds=self.deadline_seconds,
                max_workers=self.max_workers,
            )
        )
        return outcomes

    def _apply(self, progress: Progress, step: Step, outcome: DeliveryOutcome, now: datetime) -> str:
        """Persist the transition for one delivered (or failed) step."""

        if not outcome.ok:
            with best_effort("step failure log", progress_id=str(progress.id)):
                self.store.append_log(
                    user_id=progress.user_id,
                    sequence_id=progress.sequence_id,
                    step_notification_id=step.id,
                    step_order=step.step_order,
                    success=False,
                    error_message=outcome.error_message or "Unknown error",
                )
            logger.warning(
                "Step notification failed",
                user_id=progress.user_id,
                sequence_id=progress.sequence_id,
                step_order=step.step_order,
                error=outcome.error_message,
            )
            return "failed"

        with best_effort("step success log", progress_id=str(progress.id)):
            self.store.append_log(
                user_id=progress.user_id,
                sequence_id=progress.sequence_id,
                step_notification_id=step.id,
                step_order=step.step_order,
                success=True,
            )

        following = self.store.get_step_at(progress.sequence_id, step.step_order + 1)
        if following is None:
            self.store.update_progress(progress.id, current_step=step.step_order, completed=True)
            logger.info(
                "Step sequence completed",
                user_id=progress.user_id,
                sequence_id=progress.sequence_id,
                last_step=step.step_order,
            )
            return "completed"

        self.store.update_progress(
            progress.id,
            current_step=step.step_order,
            next_notification_at=self.next_fire(following, now),
        )
        logger.info(
            "Step notification sent",
            user_id=progress.user_id,
            sequence_id=progress.sequence_id,
            step_order=step.step_order,
        )
        return "advanced"

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------
    def enroll_user(
        self,
        user_id: int,
        tenant_id: int | None,
        *,
        subscription: str | None = None,
        now: datetime | None = None,
    ) -> EnrollmentResult:
        """Start every active sequence in scope for a user.

        When step 1 is ``immediate`` and a subscription is at hand it is
        delivered right away instead of waiting for the next scan; a failed
        attempt leaves the row due so the scan retries it.
        """

        now = now or self.now()
        result = EnrollmentResult()

        for sequence in self.store.get_active_sequences(tenant_id):
            try:
                if self.store.get_progress(user_id, sequence.id) is not None:
                    continue
                first = self.store.get_step_at(sequence.id, 1)
                if first is None:
                    logger.warning("Active sequence has no first step", sequence_id=sequence.id)
                    continue

                progress = self.store.create_progress(user_id, sequence.id, self.next_fire(first, now))
                result.enrolled_sequence_ids.append(sequence.id)

                if first.delay_type != "immediate" or not subscription:
                    continue
                progress = replace(progress, subscription=subscription)
                outcome = self._deliver([(progress, first)])[progress.id]
                if self._apply(progress, first, outcome, now) == "failed":
                    result.immediate_failed += 1
                else:
                    result.immediate_sent += 1
            except Exception as exc:
                self.store.rollback()
                logger.error(
                    "Enrollment failed",
                    user_id=user_id,
                    sequence_id=sequence.id,
                    error=str(exc),
                )

        logger.info(
            "User enrolled in step sequences",
            user_id=user_id,
            sequences=result.enrolled_sequence_ids,
            immediate_sent=result.immediate_sent,
        )
        return result

    def backfill_sequence(self, sequence_id: int, *, now: datetime | None = None) -> int:
        """Create step-0 rows for existing users in the sequence's scope."""

        now = now or self.now()
        first = self.store.get_step_at(sequence_id, 1)
        if first is None:
            return 0
        sequence = self.store.get_sequence(sequence_id)
        next_at = self.next_fire(first, now)
        created = 0
        for user_id in self.store.users_without_progress(sequence_id, sequence.tenant_id):
            try:
                self.store.create_progress(user_id, sequence_id, next_at)
            except Exception as exc:
                self.store.rollback()
                logger.error(
                    "Backfill enrollment failed",
                    user_id=user_id,
                    sequence_id=sequence_id,
                    error=str(exc),
                )
                continue
            created += 1
        logger.info("Sequence backfilled", sequence_id=sequence_id, enrolled=created)
        return created

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------
    def run_due(
        self,
        *,
        now: datetime | None = None,
        tenant_id: int | None = None,
        limit: int | None = None,
    ) -> ScanResult:
        """Advance every due progress row once.

        Rows are selected a single time, so a step whose successor is
        ``immediate`` is picked up by the next invocation, not this one.
        A failing selection query propagates; per-row failures do not.
        """

        now = now or self.now()
        rows, malformed = self.store.query_due_progress(now, limit or self.batch_limit, tenant_id)
        result = ScanResult(selected=len(rows) + malformed, errors=malformed)
        if not rows:
            logger.info("No pending step notifications", tenant_id=tenant_id)
            return result

        plans: list[tuple[Progress, Step]] = []
        for progress in rows:
            try:
                step = self.store.get_step_at(progress.sequence_id, progress.next_step_order)
                if step is None:
                    # sequence exhausted; only the completed flag changes
                    self.store.update_progress(progress.id, completed=True)
                    result.completed += 1
                    logger.info(
                        "Step sequence completed",
                        user_id=progress.user_id,
                        sequence_id=progress.sequence_id,
                        last_step=progress.current_step,
                    )
                    continue
                plans.append((progress, step))
            except Exception as exc:
                self.store.rollback()
                result.errors += 1
                logger.error("Failed to prepare step", progress_id=str(progress.id), error=str(exc))

        outcomes = self._deliver(plans)

        for progress, step in plans:
            try:
                state = self._apply(progress, step, outcomes[progress.id], now)
            except Exception as exc:
                self.store.rollback()
                result.errors += 1
                logger.error("Failed to record step outcome", progress_id=str(progress.id), error=str(exc))
                continue
            if outcomes[progress.id].timed_out:
                result.timed_out += 1
            if state == "failed":
                result.failed += 1
            else:
                result.sent += 1
                if state == "completed":
                    result.completed += 1

        logger.info(
            "Step notification scan finished",
            tenant_id=tenant_id,
            **result.as_dict(),
        )
        return result
