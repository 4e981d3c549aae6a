"""Admin token handling and cron secret verification."""
from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from pushadmin.config import settings
from pushadmin.utils.exceptions import AuthenticationError


ALGORITHM = "HS256"
ADMIN_TOKEN_TYPE = "admin"


class InvalidTokenError(AuthenticationError):
    """Raised when a JWT cannot be decoded or is invalid."""


def create_admin_token(subject: str | Any, expires_minutes: int | None = None) -> str:
    """Create a signed JWT identifying an admin operator."""

    minutes = expires_minutes or settings.ADMIN_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload: Dict[str, Any] = {"exp": expire, "sub": str(subject), "type": ADMIN_TOKEN_TYPE}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode a JWT and return its payload, raising ``InvalidTokenError`` if invalid."""

    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc


class AuthVerifier:
    """Resolves an admin identity from a bearer token or rejects it."""

    def verify_admin(self, token: str | None) -> str:
        if not token:
            raise InvalidTokenError("Missing bearer token")
        payload = decode_token(token)
        if payload.get("type") != ADMIN_TOKEN_TYPE or not payload.get("sub"):
            raise InvalidTokenError("Token is not an admin token")
        return str(payload["sub"])

    def verify_cron(self, token: str | None) -> None:
        secret = settings.CRON_SECRET
        if not secret or not token or not hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
            raise AuthenticationError("Invalid cron secret")
