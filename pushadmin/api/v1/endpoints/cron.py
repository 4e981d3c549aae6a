"""Trigger endpoints for external schedulers, guarded by the cron secret."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from pushadmin.api import deps
from pushadmin.schemas import ScanResultRead, SweepResult
from pushadmin.services.broadcast import BroadcastService
from pushadmin.services.progress_engine import ProgressEngine

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(deps.require_cron)])


@router.api_route("/step-notifications", methods=["GET", "POST"], response_model=ScanResultRead)
def run_step_notifications(
    tenant_id: Optional[int] = Query(None),
    engine: ProgressEngine = Depends(deps.get_progress_engine),
) -> ScanResultRead:
    return ScanResultRead(**engine.run_due(tenant_id=tenant_id).as_dict())


@router.api_route("/send-scheduled", methods=["GET", "POST"], response_model=SweepResult)
def send_scheduled(service: BroadcastService = Depends(deps.get_broadcast_service)) -> SweepResult:
    results = service.send_due()
    return SweepResult(processed=len(results), results=[result.as_dict() for result in results])
