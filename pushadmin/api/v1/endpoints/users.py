"""Subscriber lookup endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from pushadmin.api import deps
from pushadmin.db.store import Store
from pushadmin.schemas import UserDeviceRead
from pushadmin.services.registration import SubscriptionService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}", response_model=UserDeviceRead)
def read_user_device(
    user_id: int,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> UserDeviceRead:
    """Device family and browser derived from the stored subscription."""

    return UserDeviceRead(**SubscriptionService(store).device_info(user_id))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    store: Store = Depends(deps.get_store),
    _: str = Depends(deps.require_admin),
) -> None:
    SubscriptionService(store).unsubscribe(user_id)
