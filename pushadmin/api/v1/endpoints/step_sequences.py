"""Step sequence administration endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from pushadmin.api import deps
from pushadmin.db.store import Store
from pushadmin.schemas import (
    ProgressStatus,
    ScanResultRead,
    StepSequenceCreate,
    StepSequenceCreated,
    StepSequenceRead,
    ToggleRequest,
)
from pushadmin.services.progress_engine import ProgressEngine
from pushadmin.services.step_sequences import StepSequenceService

router = APIRouter(prefix="/step-sequences", tags=["step-sequences"])


@router.get("", response_model=list[StepSequenceRead])
def list_sequences(
    tenant_id: Optional[int] = Query(None),
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> list[StepSequenceRead]:
    return StepSequenceService(store).list(tenant_id=tenant_id)


@router.post("", response_model=StepSequenceCreated, status_code=status.HTTP_201_CREATED)
def create_sequence(
    payload: StepSequenceCreate,
    engine: ProgressEngine = Depends(deps.get_progress_engine),
    _: str = Depends(deps.require_admin),
) -> StepSequenceCreated:
    """Create a sequence with its steps; optionally enroll existing subscribers."""

    service = StepSequenceService(engine.store)
    sequence, _steps = service.create(
        payload.model_dump(exclude={"tenant_id", "enroll_existing_users"}),
        tenant_id=payload.tenant_id,
    )
    enrolled = 0
    if payload.enroll_existing_users and sequence.is_active:
        enrolled = engine.backfill_sequence(sequence.id)
    return StepSequenceCreated(
        sequence=StepSequenceRead.model_validate(sequence),
        enrolled_users=enrolled,
    )


@router.patch("/{sequence_id}/toggle", response_model=StepSequenceRead)
def toggle_sequence(
    sequence_id: int,
    payload: ToggleRequest | None = None,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> StepSequenceRead:
    is_active = payload.is_active if payload else None
    return StepSequenceService(store).toggle(sequence_id, is_active)


@router.delete("/{sequence_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sequence(
    sequence_id: int,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> None:
    StepSequenceService(store).delete(sequence_id)


@router.get("/status", response_model=ProgressStatus)
def sequence_status(
    tenant_id: Optional[int] = Query(None),
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> ProgressStatus:
    """Overdue and upcoming progress rows across all sequences."""

    return ProgressStatus(**StepSequenceService(store).status(tenant_id=tenant_id))


@router.post("/execute", response_model=ScanResultRead)
def execute_scan(
    tenant_id: Optional[int] = Query(None),
    engine: ProgressEngine = Depends(deps.get_progress_engine),
    _: str = Depends(deps.require_admin),
) -> ScanResultRead:
    """Run one scan immediately instead of waiting for the scheduler."""

    return ScanResultRead(**engine.run_due(tenant_id=tenant_id).as_dict())
