"""User segment endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from pushadmin.api import deps
from pushadmin.db.store import Store
from pushadmin.schemas import (
    SegmentCreate,
    SegmentPreviewRequest,
    SegmentPreviewResponse,
    SegmentRead,
)
from pushadmin.services.segments import SegmentService

router = APIRouter(prefix="/segments", tags=["segments"])


@router.post("", response_model=SegmentRead, status_code=status.HTTP_201_CREATED)
def create_segment(
    payload: SegmentCreate,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> SegmentRead:
    return SegmentService(store).create(
        payload.model_dump(exclude={"tenant_id"}), tenant_id=payload.tenant_id
    )


@router.get("", response_model=list[SegmentRead])
def list_segments(
    tenant_id: Optional[int] = Query(None),
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> list[SegmentRead]:
    return SegmentService(store).list(tenant_id=tenant_id)


@router.post("/preview", response_model=SegmentPreviewResponse)
def preview_segment(
    payload: SegmentPreviewRequest,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> SegmentPreviewResponse:
    """Count the users a filter (or saved segment) matches right now."""

    count = SegmentService(store).preview(
        filter_conditions=payload.filter_conditions,
        segment_id=payload.segment_id,
        tenant_id=payload.tenant_id,
    )
    return SegmentPreviewResponse(user_count=count)
