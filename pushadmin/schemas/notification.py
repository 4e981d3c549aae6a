"""Pydantic models for broadcasts and tracking."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationCreate(BaseModel):
    title: str
    body: str
    url: Optional[str] = None
    # ISO-8601 or "YYYY/MM/DD HH:mm"
    send_at: str
    target_type: str = "all"
    target_segment_id: Optional[int] = None
    target_filter: Optional[dict[str, Any]] = None
    tenant_id: Optional[int] = None


class NotificationRead(BaseModel):
    id: int
    tenant_id: Optional[int]
    title: str
    body: str
    url: str
    send_at: datetime
    target_type: str
    target_segment_id: Optional[int]
    target_filter: Optional[dict[str, Any]]
    target_user_count: int
    sent: bool
    status: str
    success_count: int
    failure_count: int
    sent_at: Optional[datetime]
    created_by: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class BroadcastResultRead(BaseModel):
    notification_id: int
    status: str
    audience: int
    success: int
    failure: int
    pruned: int


class SweepResult(BaseModel):
    processed: int
    results: list[BroadcastResultRead] = Field(default_factory=list)


class TrackEventRequest(BaseModel):
    notification_id: int
    event_type: str
    notification_type: str = "scheduled"
    user_id: Optional[int] = None
    url: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class NotificationStatsRead(BaseModel):
    notification_id: int
    notification_type: str
    tenant_id: Optional[int]
    total_sent: int
    total_delivered: int
    total_opened: int
    total_clicked: int
    total_dismissed: int
    open_rate: float
    ctr: float

    model_config = ConfigDict(from_attributes=True)
