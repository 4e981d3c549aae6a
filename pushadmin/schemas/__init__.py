"""Pydantic schemas package."""

from pushadmin.schemas.notification import (
    BroadcastResultRead,
    NotificationCreate,
    NotificationRead,
    NotificationStatsRead,
    SweepResult,
    TrackEventRequest,
)
from pushadmin.schemas.segment import (
    SegmentCreate,
    SegmentPreviewRequest,
    SegmentPreviewResponse,
    SegmentRead,
)
from pushadmin.schemas.step_sequence import (
    ProgressStatus,
    ScanResultRead,
    StepIn,
    StepRead,
    StepSequenceCreate,
    StepSequenceCreated,
    StepSequenceRead,
    ToggleRequest,
)
from pushadmin.schemas.subscription import (
    PushSubscriptionIn,
    RegisterRequest,
    RegisterResponse,
    VapidKeyResponse,
)
from pushadmin.schemas.user import UserDeviceRead

__all__ = [
    "BroadcastResultRead",
    "NotificationCreate",
    "NotificationRead",
    "NotificationStatsRead",
    "SweepResult",
    "TrackEventRequest",
    "SegmentCreate",
    "SegmentPreviewRequest",
    "SegmentPreviewResponse",
    "SegmentRead",
    "ProgressStatus",
    "ScanResultRead",
    "StepIn",
    "StepRead",
    "StepSequenceCreate",
    "StepSequenceCreated",
    "StepSequenceRead",
    "ToggleRequest",
    "PushSubscriptionIn",
    "RegisterRequest",
    "RegisterResponse",
    "VapidKeyResponse",
    "UserDeviceRead",
]
