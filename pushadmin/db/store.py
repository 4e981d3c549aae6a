"""Relational store used by the delivery engines.

Every write commits on its own; the only multi-row write is sequence
creation, which compensates by deleting the sequence when its steps
cannot be inserted.
"""
from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Iterable, Sequence as SequenceType
from uuid import UUID

from loguru import logger
from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushadmin.core.records import Progress, Sequence, Step
from pushadmin.db.models import (
    Notification,
    NotificationEvent,
    NotificationStats,
    StepNotification,
    StepNotificationLog,
    StepSequence,
    User,
    UserSegment,
    UserStepProgress,
)
from pushadmin.utils.exceptions import NotFoundError, SequenceCreationError, ValidationError


class Store:
    """Table-like operations over a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit_or_rollback(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Step progress
    # ------------------------------------------------------------------
    def query_due_progress(
        self, now: datetime, limit: int, tenant_id: int | None = None
    ) -> tuple[list[Progress], int]:
        """Return incomplete rows whose next notification is due, oldest first.

        Rows that fail record validation are logged and skipped; the second
        element of the result counts them.
        """

        stmt = (
            select(UserStepProgress, User.subscription)
            .join(User, User.id == UserStepProgress.user_id)
            .where(UserStepProgress.completed.is_(False))
            .where(UserStepProgress.next_notification_at.is_not(None))
            .where(UserStepProgress.next_notification_at <= now)
        )
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        stmt = stmt.order_by(UserStepProgress.next_notification_at.asc()).limit(limit)
        records: list[Progress] = []
        skipped = 0
        for row, subscription in self.db.execute(stmt):
            try:
                records.append(Progress.from_row(row, subscription))
            except ValidationError as exc:
                skipped += 1
                logger.error("Skipping malformed progress row", progress_id=str(row.id), error=str(exc))
        return records, skipped

    def get_progress(self, user_id: int, sequence_id: int) -> Progress | None:
        row = self.db.scalars(
            select(UserStepProgress).where(
                UserStepProgress.user_id == user_id,
                UserStepProgress.sequence_id == sequence_id,
            )
        ).first()
        return Progress.from_row(row) if row else None

    def create_progress(
        self, user_id: int, sequence_id: int, next_notification_at: datetime
    ) -> Progress:
        row = UserStepProgress(
            user_id=user_id,
            sequence_id=sequence_id,
            current_step=0,
            next_notification_at=next_notification_at,
            completed=False,
        )
        self.db.add(row)
        self.db.commit()
        return Progress.from_row(row)

    def update_progress(self, progress_id: UUID, **fields: Any) -> None:
        row = self.db.get(UserStepProgress, progress_id)
        if row is None:
            raise NotFoundError("Progress row not found", details={"progress_id": str(progress_id)})
        for name, value in fields.items():
            setattr(row, name, value)
        self.db.commit()

    def append_log(
        self,
        *,
        user_id: int,
        sequence_id: int,
        step_order: int,
        success: bool,
        step_notification_id: int | None = None,
        error_message: str | None = None,
    ) -> None:
        self.db.add(
            StepNotificationLog(
                user_id=user_id,
                sequence_id=sequence_id,
                step_notification_id=step_notification_id,
                step_order=step_order,
                success=success,
                error_message=error_message,
            )
        )
        self._commit_or_rollback()

    def progress_overview(self, tenant_id: int | None = None) -> list[tuple[UserStepProgress, str]]:
        stmt = (
            select(UserStepProgress, StepSequence.name)
            .join(StepSequence, StepSequence.id == UserStepProgress.sequence_id)
            .join(User, User.id == UserStepProgress.user_id)
            .where(UserStepProgress.completed.is_(False))
        )
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        stmt = stmt.order_by(UserStepProgress.next_notification_at.asc())
        return [(row, name) for row, name in self.db.execute(stmt)]

    def count_completed_progress(self, tenant_id: int | None = None) -> int:
        stmt = (
            select(func.count(UserStepProgress.id))
            .join(User, User.id == UserStepProgress.user_id)
            .where(UserStepProgress.completed.is_(True))
        )
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        return self.db.scalar(stmt) or 0

    # ------------------------------------------------------------------
    # Sequences and steps
    # ------------------------------------------------------------------
    def get_step_at(self, sequence_id: int, order: int) -> Step | None:
        row = self.db.scalars(
            select(StepNotification).where(
                StepNotification.sequence_id == sequence_id,
                StepNotification.step_order == order,
            )
        ).first()
        return Step.from_row(row) if row else None

    def get_active_sequences(self, tenant_id: int | None) -> list[Sequence]:
        """Active sequences for the tenant plus global (tenant-less) ones."""

        stmt = select(StepSequence).where(StepSequence.is_active.is_(True))
        if tenant_id is not None:
            stmt = stmt.where(
                or_(StepSequence.tenant_id == tenant_id, StepSequence.tenant_id.is_(None))
            )
        else:
            stmt = stmt.where(StepSequence.tenant_id.is_(None))
        stmt = stmt.order_by(StepSequence.id.asc())
        return [Sequence.from_row(row) for row in self.db.scalars(stmt)]

    def list_sequences(self, tenant_id: int | None = None) -> list[StepSequence]:
        stmt = select(StepSequence).order_by(StepSequence.created_at.desc(), StepSequence.id.desc())
        if tenant_id is not None:
            stmt = stmt.where(
                or_(StepSequence.tenant_id == tenant_id, StepSequence.tenant_id.is_(None))
            )
        return list(self.db.scalars(stmt))

    def get_sequence(self, sequence_id: int) -> StepSequence:
        sequence = self.db.get(StepSequence, sequence_id)
        if sequence is None:
            raise NotFoundError("Step sequence not found", details={"sequence_id": sequence_id})
        return sequence

    def create_sequence_with_steps(
        self, sequence_fields: dict[str, Any], steps: Iterable[dict[str, Any]]
    ) -> tuple[StepSequence, list[StepNotification]]:
        """Insert a sequence then its steps; undo the sequence if the steps fail."""

        sequence = StepSequence(**sequence_fields)
        self.db.add(sequence)
        self.db.commit()

        try:
            rows = [StepNotification(sequence_id=sequence.id, **step) for step in steps]
            self.db.add_all(rows)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(
                "Step insert failed, removing sequence",
                sequence_id=sequence.id,
                error=str(exc),
            )
            self.db.delete(self.db.get(StepSequence, sequence.id))
            self.db.commit()
            raise SequenceCreationError(
                "Failed to store sequence steps", details={"error": str(exc)}
            ) from exc
        return sequence, rows

    def set_sequence_active(self, sequence_id: int, is_active: bool) -> StepSequence:
        sequence = self.get_sequence(sequence_id)
        sequence.is_active = is_active
        self.db.commit()
        return sequence

    def delete_sequence(self, sequence_id: int) -> None:
        self.db.delete(self.get_sequence(sequence_id))
        self.db.commit()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return user

    def get_user_by_endpoint(self, endpoint: str) -> User | None:
        return self.db.scalars(select(User).where(User.endpoint == endpoint)).first()

    def save_user(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        return user

    def delete_user(self, user_id: int) -> None:
        self.db.delete(self.get_user(user_id))
        self._commit_or_rollback()

    def users_without_progress(self, sequence_id: int, tenant_id: int | None) -> list[int]:
        """Ids of users in scope that have no progress row for the sequence."""

        enrolled = select(UserStepProgress.user_id).where(UserStepProgress.sequence_id == sequence_id)
        stmt = select(User.id).where(User.id.not_in(enrolled))
        if tenant_id is not None:
            stmt = stmt.where(User.tenant_id == tenant_id)
        return list(self.db.scalars(stmt.order_by(User.id.asc())))

    def count_users(self, clauses: SequenceType[ColumnElement[bool]]) -> int:
        return self.db.scalar(select(func.count(User.id)).where(*clauses)) or 0

    def list_user_targets(self, clauses: SequenceType[ColumnElement[bool]]) -> list[tuple[int, str]]:
        """``(user_id, raw_subscription)`` pairs matching the clauses."""

        stmt = select(User.id, User.subscription).where(*clauses).order_by(User.id.asc())
        return [(user_id, raw) for user_id, raw in self.db.execute(stmt)]

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------
    def get_segment(self, segment_id: int, tenant_id: int | None = None) -> UserSegment:
        stmt = select(UserSegment).where(UserSegment.id == segment_id)
        if tenant_id is not None:
            stmt = stmt.where(UserSegment.tenant_id == tenant_id)
        segment = self.db.scalars(stmt).first()
        if segment is None:
            raise NotFoundError("Segment not found", details={"segment_id": segment_id})
        return segment

    def find_segment_by_name(self, name: str, tenant_id: int | None = None) -> UserSegment | None:
        stmt = select(UserSegment).where(UserSegment.name == name)
        if tenant_id is None:
            stmt = stmt.where(UserSegment.tenant_id.is_(None))
        else:
            stmt = stmt.where(UserSegment.tenant_id == tenant_id)
        return self.db.scalars(stmt).first()

    def list_segments(self, tenant_id: int | None = None) -> list[UserSegment]:
        stmt = select(UserSegment).order_by(UserSegment.created_at.desc(), UserSegment.id.desc())
        if tenant_id is not None:
            stmt = stmt.where(UserSegment.tenant_id == tenant_id)
        return list(self.db.scalars(stmt))

    def save_segment(self, segment: UserSegment) -> UserSegment:
        self.db.add(segment)
        self.db.commit()
        return segment

    # ------------------------------------------------------------------
    # Broadcast notifications
    # ------------------------------------------------------------------
    def save_notification(self, notification: Notification) -> Notification:
        self.db.add(notification)
        self.db.commit()
        return notification

    def get_notification(self, notification_id: int) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found", details={"notification_id": notification_id})
        return notification

    def find_notification(self, notification_id: int) -> Notification | None:
        return self.db.get(Notification, notification_id)

    def due_notifications(self, now: datetime, tenant_id: int | None = None) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.sent.is_(False))
            .where(Notification.send_at <= now)
        )
        if tenant_id is not None:
            stmt = stmt.where(Notification.tenant_id == tenant_id)
        stmt = stmt.order_by(Notification.send_at.asc(), Notification.id.asc())
        return list(self.db.scalars(stmt))

    def list_notifications(self, tenant_id: int | None = None, limit: int = 100) -> list[Notification]:
        stmt = select(Notification).order_by(Notification.send_at.desc()).limit(limit)
        if tenant_id is not None:
            stmt = stmt.where(Notification.tenant_id == tenant_id)
        return list(self.db.scalars(stmt))

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ------------------------------------------------------------------
    # Events and stats
    # ------------------------------------------------------------------
    def append_event(
        self,
        *,
        notification_id: int,
        event_type: str,
        notification_type: str = "scheduled",
        user_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> NotificationEvent:
        event = NotificationEvent(
            notification_id=notification_id,
            notification_type=notification_type,
            user_id=user_id,
            event_type=event_type,
            event_metadata=metadata or {},
        )
        self.db.add(event)
        self._commit_or_rollback()
        return event

    def count_events(self, notification_id: int) -> Counter[str]:
        rows = self.db.execute(
            select(NotificationEvent.event_type, func.count(NotificationEvent.id))
            .where(NotificationEvent.notification_id == notification_id)
            .group_by(NotificationEvent.event_type)
        )
        return Counter({event_type: count for event_type, count in rows})

    def get_stats(self, notification_id: int) -> NotificationStats | None:
        return self.db.get(NotificationStats, notification_id)

    def upsert_stats(self, notification_id: int, fields: dict[str, Any]) -> NotificationStats:
        stats = self.db.get(NotificationStats, notification_id)
        if stats is None:
            stats = NotificationStats(notification_id=notification_id)
            self.db.add(stats)
        for name, value in fields.items():
            setattr(stats, name, value)
        self._commit_or_rollback()
        return stats
