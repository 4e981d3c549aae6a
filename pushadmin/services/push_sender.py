"""Web Push transport wrapper."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger
from pywebpush import WebPushException, webpush

from pushadmin.config import Settings
from pushadmin.core.subscription import PushSubscriptionInfo
from pushadmin.utils.exceptions import DeliveryError


class PushDeliveryError(DeliveryError):
    """The push service refused or failed to accept a message."""


@dataclass(frozen=True, slots=True)
class PushPayload:
    title: str
    body: str
    url: str = "/"
    icon: str | None = None
    badge: str | None = None
    notification_id: int | None = None
    notification_type: str = "scheduled"

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "title": self.title,
            "body": self.body,
            "url": self.url or "/",
            "notification_type": self.notification_type,
        }
        if self.icon:
            data["icon"] = self.icon
        if self.badge:
            data["badge"] = self.badge
        if self.notification_id is not None:
            data["notification_id"] = self.notification_id
        return json.dumps(data)


class PushSender(Protocol):
    def send(self, subscription: PushSubscriptionInfo, payload: PushPayload) -> None:
        """Deliver one message; raise ``DeliveryError`` on failure."""


class WebPushSender:
    """Sends through pywebpush with explicitly supplied VAPID credentials."""

    def __init__(
        self,
        *,
        vapid_private_key: str,
        vapid_subject: str,
        ttl: int = 86400,
        timeout: float = 10.0,
    ) -> None:
        if not vapid_private_key:
            raise ValueError("VAPID private key is not configured")
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebPushSender":
        return cls(
            vapid_private_key=settings.VAPID_PRIVATE_KEY or "",
            vapid_subject=settings.VAPID_SUBJECT,
            ttl=settings.PUSH_TTL_SECONDS,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )

    def send(self, subscription: PushSubscriptionInfo, payload: PushPayload) -> None:
        try:
            webpush(
                subscription_info=subscription.as_dict(),
                data=payload.to_json(),
                vapid_private_key=self.vapid_private_key,
                # pywebpush fills in "aud" and mutates the claims it is given
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as ex:
            status_code = ex.response.status_code if ex.response is not None else None
            logger.warning(
                "WebPush rejected",
                endpoint=subscription.endpoint[:80],
                status_code=status_code,
                error=str(ex),
            )
            raise PushDeliveryError(str(ex), status_code=status_code) from ex
