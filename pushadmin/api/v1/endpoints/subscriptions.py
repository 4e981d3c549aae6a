"""Public subscriber registration endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pushadmin.api import deps
from pushadmin.config import settings
from pushadmin.db.store import Store
from pushadmin.schemas import RegisterRequest, RegisterResponse, VapidKeyResponse
from pushadmin.services.progress_engine import ProgressEngine
from pushadmin.services.registration import SubscriptionService

router = APIRouter(tags=["subscriptions"])


@router.post("/register", response_model=RegisterResponse)
def register_subscription(
    payload: RegisterRequest,
    request: Request,
    store: Store = Depends(deps.get_store),
    engine: ProgressEngine = Depends(deps.get_progress_engine),
) -> RegisterResponse:
    """Store a browser subscription and start sequences for new subscribers."""

    service = SubscriptionService(store, engine)
    result = service.register(
        payload.subscription.model_dump(),
        tenant_id=payload.tenant_id,
        user_agent=request.headers.get("user-agent"),
    )
    return RegisterResponse(
        message="Subscription registered",
        user_id=result.user_id,
        created=result.created,
        enrolled_sequence_ids=result.enrollment.enrolled_sequence_ids,
    )


@router.get("/vapid-public-key", response_model=VapidKeyResponse)
def read_vapid_public_key() -> VapidKeyResponse:
    if not settings.VAPID_PUBLIC_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Web Push is not configured",
        )
    return VapidKeyResponse(public_key=settings.VAPID_PUBLIC_KEY)
