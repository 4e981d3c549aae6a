"""Scheduled broadcast endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from pushadmin.api import deps
from pushadmin.db.store import Store
from pushadmin.schemas import (
    BroadcastResultRead,
    NotificationCreate,
    NotificationRead,
    NotificationStatsRead,
)
from pushadmin.services.broadcast import BroadcastService
from pushadmin.services.event_stats import EventStatsAggregator

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    service: BroadcastService = Depends(deps.get_broadcast_service),
    admin: str = Depends(deps.require_admin),
) -> NotificationRead:
    """Schedule a broadcast and report how many users it currently targets."""

    return service.create_notification(
        payload.model_dump(exclude={"tenant_id"}),
        tenant_id=payload.tenant_id,
        created_by=admin,
    )


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    tenant_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> list[NotificationRead]:
    return store.list_notifications(tenant_id, limit=limit)


@router.post("/{notification_id}/send", response_model=BroadcastResultRead)
def send_notification_now(
    notification_id: int,
    service: BroadcastService = Depends(deps.get_broadcast_service),
    _: str = Depends(deps.require_admin),
) -> BroadcastResultRead:
    return BroadcastResultRead(**service.send_now(notification_id).as_dict())


@router.get("/{notification_id}/stats", response_model=NotificationStatsRead)
def read_notification_stats(
    notification_id: int,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> NotificationStatsRead:
    """Stored counters, or a fresh tally of the event log when none are stored yet."""

    stats = store.get_stats(notification_id)
    if stats is not None:
        return stats
    fields = EventStatsAggregator(store).compute(notification_id)
    return NotificationStatsRead(**{"notification_id": notification_id, "tenant_id": None, **fields})
