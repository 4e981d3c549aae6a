"""Pydantic models for step sequence administration."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class StepIn(BaseModel):
    step_order: int
    title: str
    body: str
    url: Optional[str] = None
    delay_type: str
    delay_value: Optional[int] = 0
    scheduled_time: Optional[str] = None


class StepSequenceCreate(BaseModel):
    name: str
    description: Optional[str] = None
    is_active: Optional[bool] = None
    tenant_id: Optional[int] = None
    enroll_existing_users: bool = False
    steps: list[StepIn]


class StepRead(BaseModel):
    id: int
    step_order: int
    title: str
    body: str
    url: str
    delay_type: str
    delay_value: int
    scheduled_time: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class StepSequenceRead(BaseModel):
    id: int
    tenant_id: Optional[int]
    name: str
    description: str
    is_active: bool
    created_at: Optional[datetime]
    steps: list[StepRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class StepSequenceCreated(BaseModel):
    sequence: StepSequenceRead
    enrolled_users: int = 0


class ToggleRequest(BaseModel):
    is_active: Optional[bool] = None


class ScanResultRead(BaseModel):
    selected: int
    sent: int
    failed: int
    completed: int
    timed_out: int
    errors: int


class ProgressStatus(BaseModel):
    stats: dict[str, int]
    overdue: list[dict[str, Any]]
    upcoming: list[dict[str, Any]]
