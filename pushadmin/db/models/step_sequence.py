"""Step sequence (drip campaign) models."""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pushadmin.db.base import Base


class StepSequence(Base):
    """Ordered drip campaign; ``tenant_id`` NULL means global."""

    __tablename__ = "step_sequences"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, default="", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    steps = relationship(
        "StepNotification",
        back_populates="sequence",
        cascade="all, delete-orphan",
        order_by="StepNotification.step_order",
    )
    progress = relationship(
        "UserStepProgress", back_populates="sequence", cascade="all, delete-orphan"
    )


class StepNotification(Base):
    """One timed message within a sequence, addressed by 1-based order."""

    __tablename__ = "step_notifications"
    __table_args__ = (
        UniqueConstraint("sequence_id", "step_order", name="uq_step_notifications_sequence_order"),
    )

    id = Column(Integer, primary_key=True)
    sequence_id = Column(
        Integer, ForeignKey("step_sequences.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_order = Column(Integer, nullable=False)
    title = Column(String(100), nullable=False)
    body = Column(String(500), nullable=False)
    url = Column(Text, default="", nullable=False)

    delay_type = Column(String(20), nullable=False)
    delay_value = Column(Integer, default=0, nullable=False)
    scheduled_time = Column(String(8), nullable=True)  # "HH:MM:SS"

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sequence = relationship("StepSequence", back_populates="steps")


class UserStepProgress(Base):
    """Per-user cursor through a sequence; the unit the engine advances."""

    __tablename__ = "user_step_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence_id", name="uq_user_step_progress_user_sequence"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sequence_id = Column(
        Integer, ForeignKey("step_sequences.id", ondelete="CASCADE"), nullable=False, index=True
    )
    current_step = Column(Integer, default=0, nullable=False)
    next_notification_at = Column(DateTime(timezone=True), nullable=True, index=True)
    completed = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="step_progress")
    sequence = relationship("StepSequence", back_populates="progress")


class StepNotificationLog(Base):
    """Write-once audit row for one step delivery attempt."""

    __tablename__ = "step_notification_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sequence_id = Column(
        Integer, ForeignKey("step_sequences.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_notification_id = Column(
        Integer, ForeignKey("step_notifications.id", ondelete="CASCADE"), nullable=True
    )
    step_order = Column(Integer, nullable=False)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="step_logs")
