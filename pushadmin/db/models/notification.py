"""Scheduled broadcast notification and event tracking models."""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from pushadmin.db.base import Base


class Notification(Base):
    """One-shot broadcast to all users, a saved segment or an ad-hoc filter."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    title = Column(String(100), nullable=False)
    body = Column(String(500), nullable=False)
    url = Column(Text, default="", nullable=False)
    send_at = Column(DateTime(timezone=True), nullable=False, index=True)

    target_type = Column(String(20), default="all", nullable=False)
    target_segment_id = Column(
        Integer, ForeignKey("user_segments.id", ondelete="SET NULL"), nullable=True
    )
    target_filter = Column(JSONB().with_variant(JSON(), "sqlite"), nullable=True)
    target_user_count = Column(Integer, default=0, nullable=False)

    sent = Column(Boolean, default=False, nullable=False, index=True)
    status = Column(String(20), default="scheduled", nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    failure_count = Column(Integer, default=0, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def mark_finished(self, *, status: str, success: int, failure: int, sent_at) -> None:
        """Record the outcome of the send pipeline."""

        self.sent = True
        self.status = status
        self.success_count = success
        self.failure_count = failure
        self.sent_at = sent_at


class NotificationEvent(Base):
    """Append-only delivery/engagement event; source of truth for stats."""

    __tablename__ = "notification_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    notification_id = Column(Integer, nullable=False, index=True)
    notification_type = Column(String(20), default="scheduled", nullable=False)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    event_type = Column(String(20), nullable=False, index=True)
    event_metadata = Column(
        "metadata", JSONB().with_variant(JSON(), "sqlite"), default=dict, nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class NotificationStats(Base):
    """Denormalised counters per notification, rebuilt from events."""

    __tablename__ = "notification_stats"

    notification_id = Column(Integer, primary_key=True)
    notification_type = Column(String(20), default="scheduled", nullable=False)
    tenant_id = Column(Integer, nullable=True, index=True)

    total_sent = Column(Integer, default=0, nullable=False)
    total_delivered = Column(Integer, default=0, nullable=False)
    total_opened = Column(Integer, default=0, nullable=False)
    total_clicked = Column(Integer, default=0, nullable=False)
    total_dismissed = Column(Integer, default=0, nullable=False)
    open_rate = Column(Float, default=0.0, nullable=False)
    ctr = Column(Float, default=0.0, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
