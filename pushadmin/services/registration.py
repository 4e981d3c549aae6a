"""Subscriber registration and lookup."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError

from pushadmin.core.subscription import (
    classify_device,
    classify_stored_subscription,
    detect_browser,
    encode_subscription,
    validate_subscription,
)
from pushadmin.db.models import User
from pushadmin.db.store import Store
from pushadmin.services.progress_engine import EnrollmentResult, ProgressEngine

USER_AGENT_MAX_LENGTH = 255


@dataclass(slots=True)
class RegistrationResult:
    user_id: int
    created: bool
    enrollment: EnrollmentResult = field(default_factory=EnrollmentResult)


class SubscriptionService:
    """Upserts subscribers by push endpoint and enrolls new ones."""

    def __init__(self, store: Store, engine: ProgressEngine | None = None):
        self.store = store
        self.engine = engine

    def register(
        self,
        subscription: Any,
        *,
        tenant_id: int | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> RegistrationResult:
        """Store the subscription; only a brand-new endpoint starts sequences.

        The payload is validated before anything is written.
        """

        info = validate_subscription(subscription)
        raw = encode_subscription(info)

        existing = self.store.get_user_by_endpoint(info.endpoint)
        if existing is not None:
            return self._refresh(existing, raw, info.endpoint)

        user = User(
            tenant_id=tenant_id,
            subscription=raw,
            endpoint=info.endpoint,
            device_type=classify_device(info.endpoint),
            browser=detect_browser(user_agent),
            user_agent=(user_agent or "")[:USER_AGENT_MAX_LENGTH] or None,
        )
        try:
            self.store.save_user(user)
        except IntegrityError:
            # lost a race with a concurrent registration of the same endpoint
            self.store.rollback()
            existing = self.store.get_user_by_endpoint(info.endpoint)
            if existing is None:
                raise
            return self._refresh(existing, raw, info.endpoint)

        logger.info(
            "Subscriber registered",
            user_id=user.id,
            tenant_id=tenant_id,
            device_type=user.device_type,
            browser=user.browser,
        )
        result = RegistrationResult(user_id=user.id, created=True)
        if self.engine is not None:
            result.enrollment = self.engine.enroll_user(user.id, tenant_id, subscription=raw, now=now)
        return result

    def _refresh(self, user: User, raw: str, endpoint: str) -> RegistrationResult:
        user.replace_subscription(raw, endpoint)
        self.store.save_user(user)
        logger.info("Subscription refreshed", user_id=user.id)
        return RegistrationResult(user_id=user.id, created=False)

    def device_info(self, user_id: int) -> dict[str, Any]:
        user = self.store.get_user(user_id)
        return {
            "user_id": user.id,
            "tenant_id": user.tenant_id,
            "device_type": user.device_type or classify_stored_subscription(user.subscription),
            "browser": user.browser or "Other",
            "engagement_score": user.engagement_score,
            "created_at": user.created_at.isoformat() if user.created_at else None,
        }

    def unsubscribe(self, user_id: int) -> None:
        self.store.delete_user(user_id)
        logger.info("Subscriber removed", user_id=user_id)
