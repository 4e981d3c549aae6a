"""Pydantic models for subscriber lookups."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class UserDeviceRead(BaseModel):
    user_id: int
    tenant_id: Optional[int]
    device_type: str
    browser: str
    engagement_score: int
    created_at: Optional[str]
