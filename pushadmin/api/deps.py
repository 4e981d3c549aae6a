"""Shared API dependencies."""
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pushadmin.core.security import AuthVerifier
from pushadmin.db.session import get_db
from pushadmin.db.store import Store
from pushadmin.services.broadcast import BroadcastService
from pushadmin.services.progress_engine import ProgressEngine
from pushadmin.services.push_sender import PushSender
from pushadmin.services.runtime import build_broadcast_service, build_progress_engine
from pushadmin.utils.exceptions import AuthenticationError, handle_authentication_error

bearer_scheme = HTTPBearer(auto_error=False)
auth_verifier = AuthVerifier()


def get_store(db: Session = Depends(get_db)) -> Store:
    return Store(db)


def get_push_sender(request: Request) -> PushSender:
    """Return the sender built at startup or raise if VAPID keys are missing."""

    sender = getattr(request.app.state, "push_sender", None)
    if sender is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Web Push is not configured",
        )
    return sender


def get_progress_engine(
    db: Session = Depends(get_db),
    sender: PushSender = Depends(get_push_sender),
) -> ProgressEngine:
    return build_progress_engine(db, sender)


def get_broadcast_service(
    db: Session = Depends(get_db),
    sender: PushSender = Depends(get_push_sender),
) -> BroadcastService:
    return build_broadcast_service(db, sender)


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str | None:
    return credentials.credentials if credentials else None


def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Resolve the admin subject from the Authorization header."""

    try:
        return auth_verifier.verify_admin(_bearer_token(credentials))
    except AuthenticationError as exc:
        raise handle_authentication_error(exc) from exc


def require_cron(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    try:
        auth_verifier.verify_cron(_bearer_token(credentials))
    except AuthenticationError as exc:
        raise handle_authentication_error(exc) from exc
