"""Database models package."""
from pushadmin.db.models.tenant import Tenant
from pushadmin.db.models.user import User
from pushadmin.db.models.segment import UserSegment
from pushadmin.db.models.step_sequence import (
    StepNotification,
    StepNotificationLog,
    StepSequence,
    UserStepProgress,
)
from pushadmin.db.models.notification import Notification, NotificationEvent, NotificationStats

__all__ = [
    "Tenant",
    "User",
    "UserSegment",
    "StepSequence",
    "StepNotification",
    "UserStepProgress",
    "StepNotificationLog",
    "Notification",
    "NotificationEvent",
    "NotificationStats",
]
