"""Encode, decode and classify Web Push subscription payloads."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from pushadmin.utils.exceptions import InvalidSubscriptionError

# Substring of the endpoint host -> device family (display only)
DEVICE_FAMILIES: tuple[tuple[str, str], ...] = (
    ("fcm.googleapis.com", "Android"),
    ("wns2", "Windows"),
    ("notify.windows.com", "Windows"),
    ("updates.push.services.mozilla.com", "Firefox"),
)


@dataclass(frozen=True, slots=True)
class PushSubscriptionInfo:
    endpoint: str
    keys: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"endpoint": self.endpoint, "keys": dict(self.keys)}


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_subscription(payload: Any) -> PushSubscriptionInfo:
    """Check the browser's ``PushSubscription.toJSON()`` shape."""

    if not isinstance(payload, dict):
        raise InvalidSubscriptionError("Subscription must be an object")
    endpoint = payload.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint:
        raise InvalidSubscriptionError("Subscription endpoint is required")
    if not _is_absolute_url(endpoint):
        raise InvalidSubscriptionError("Subscription endpoint must be an absolute URL")
    keys = payload.get("keys")
    if not keys or not isinstance(keys, dict):
        raise InvalidSubscriptionError("Subscription keys are required")
    return PushSubscriptionInfo(endpoint=endpoint, keys=keys)


def encode_subscription(info: PushSubscriptionInfo) -> str:
    return json.dumps(info.as_dict(), separators=(",", ":"), sort_keys=True)


def decode_subscription(raw: str | None) -> PushSubscriptionInfo:
    """Parse the stored JSON; raises ``InvalidSubscriptionError`` on any defect."""

    if not raw:
        raise InvalidSubscriptionError("No subscription stored")
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidSubscriptionError(f"Subscription is not valid JSON: {exc}") from exc
    return validate_subscription(payload)


def classify_device(endpoint: str | None) -> str:
    """Best-effort device family from the push service host."""

    if not endpoint:
        return "Unknown"
    try:
        host = urlparse(endpoint).netloc
    except ValueError:
        return "Unknown"
    if not host:
        return "Unknown"
    for needle, family in DEVICE_FAMILIES:
        if needle in host:
            return family
    return "Web"


def classify_stored_subscription(raw: str | None) -> str:
    try:
        return classify_device(decode_subscription(raw).endpoint)
    except InvalidSubscriptionError:
        return "Unknown"


def detect_browser(user_agent: str | None) -> str:
    """Coarse browser family used by the ``browser`` segment filter."""

    if not user_agent:
        return "Other"
    ua = user_agent.lower()
    # Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari
    if "edg/" in ua or "edge/" in ua:
        return "Edge"
    if "opr/" in ua or "opera" in ua:
        return "Opera"
    if "firefox/" in ua or "fxios" in ua:
        return "Firefox"
    if "chrome/" in ua or "crios" in ua:
        return "Chrome"
    if "safari/" in ua:
        return "Safari"
    return "Other"
