"""API router for version 1."""
from fastapi import APIRouter

from pushadmin.api.v1.endpoints import (
    cron,
    notifications,
    segments,
    step_sequences,
    subscriptions,
    tracking,
    users,
)


api_router = APIRouter()
api_router.include_router(subscriptions.router)
api_router.include_router(tracking.router)
api_router.include_router(step_sequences.router)
api_router.include_router(notifications.router)
api_router.include_router(segments.router)
api_router.include_router(users.router)
api_router.include_router(cron.router)
