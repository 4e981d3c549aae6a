"""Pydantic models for user segments."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class SegmentCreate(BaseModel):
    name: str
    description: Optional[str] = None
    filter_conditions: dict[str, Any]
    is_dynamic: Optional[bool] = None
    tenant_id: Optional[int] = None


class SegmentRead(BaseModel):
    id: int
    tenant_id: Optional[int]
    name: str
    description: str
    filter_conditions: dict[str, Any]
    is_dynamic: bool
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class SegmentPreviewRequest(BaseModel):
    filter_conditions: Optional[dict[str, Any]] = None
    segment_id: Optional[int] = None
    tenant_id: Optional[int] = None


class SegmentPreviewResponse(BaseModel):
    user_count: int
