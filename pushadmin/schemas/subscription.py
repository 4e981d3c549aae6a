"""Pydantic models for subscriber registration."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class PushSubscriptionIn(BaseModel):
    """Browser ``PushSubscription.toJSON()`` output."""

    endpoint: str
    keys: dict[str, Any] = Field(default_factory=dict)
    expirationTime: Optional[float] = None


class RegisterRequest(BaseModel):
    subscription: PushSubscriptionIn
    tenant_id: Optional[int] = None


class RegisterResponse(BaseModel):
    status: str = "ok"
    message: str
    user_id: int
    created: bool
    enrolled_sequence_ids: list[int] = Field(default_factory=list)


class VapidKeyResponse(BaseModel):
    public_key: str
