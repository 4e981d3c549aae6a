"""Engagement tracking endpoint called by the service worker."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from pushadmin.api import deps
from pushadmin.db.store import Store
from pushadmin.schemas import TrackEventRequest
from pushadmin.services.event_stats import CLIENT_EVENT_TYPES, EventStatsAggregator

router = APIRouter(tags=["tracking"])


@router.post("/track")
def track_event(payload: TrackEventRequest, store: Store = Depends(deps.get_store)) -> dict[str, str]:
    EventStatsAggregator(store).track_event(
        payload.notification_id,
        payload.event_type,
        notification_type=payload.notification_type,
        user_id=payload.user_id,
        url=payload.url,
        metadata=payload.metadata,
        allowed_types=CLIENT_EVENT_TYPES,
    )
    return {"status": "ok"}
