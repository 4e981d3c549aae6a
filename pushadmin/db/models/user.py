"""Subscriber database model."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pushadmin.db.base import Base


class User(Base):
    """A push subscriber wrapping exactly one browser subscription."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )

    # String-encoded JSON of the PushSubscription ({endpoint, keys})
    subscription = Column(Text, nullable=False)
    endpoint = Column(Text, nullable=False, unique=True)

    # Segmentation attributes
    device_type = Column(String(20), index=True)
    browser = Column(String(20), index=True)
    user_agent = Column(String(255))
    engagement_score = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    step_progress = relationship(
        "UserStepProgress", back_populates="user", cascade="all, delete-orphan"
    )
    step_logs = relationship(
        "StepNotificationLog", back_populates="user", cascade="all, delete-orphan"
    )

    def replace_subscription(self, raw_subscription: str, endpoint: str) -> None:
        """Swap in a refreshed subscription payload for the same endpoint."""

        self.subscription = raw_subscription
        self.endpoint = endpoint
