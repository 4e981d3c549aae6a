"""Service layer for saved user segments."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError

from pushadmin.core.filters import build_user_filters, validate_filter_conditions
from pushadmin.db.models import UserSegment
from pushadmin.db.store import Store
from pushadmin.utils.exceptions import ValidationError


class SegmentService:
    def __init__(self, store: Store):
        self.store = store

    def create(self, payload: dict[str, Any], *, tenant_id: int | None = None) -> UserSegment:
        """Save a named filter; conditions are checked strictly here."""

        name = payload.get("name")
        filter_conditions = payload.get("filter_conditions")
        if not name or not filter_conditions:
            raise ValidationError("name and filter_conditions are required")
        validate_filter_conditions(filter_conditions)
        # the unique constraint does not cover global (NULL tenant) segments
        if self.store.find_segment_by_name(name, tenant_id) is not None:
            raise ValidationError("Segment name already exists", details={"name": name})

        is_dynamic = payload.get("is_dynamic")
        segment = UserSegment(
            tenant_id=tenant_id,
            name=name,
            description=payload.get("description") or "",
            filter_conditions=filter_conditions,
            is_dynamic=True if is_dynamic is None else bool(is_dynamic),
        )
        try:
            self.store.save_segment(segment)
        except IntegrityError as exc:
            self.store.rollback()
            raise ValidationError("Segment name already exists", details={"name": name}) from exc

        logger.info("Segment created", segment_id=segment.id, tenant_id=tenant_id)
        return segment

    def list(self, *, tenant_id: int | None = None) -> list[UserSegment]:
        return self.store.list_segments(tenant_id)

    def preview(
        self,
        *,
        filter_conditions: Any = None,
        segment_id: int | None = None,
        tenant_id: int | None = None,
        now: datetime | None = None,
    ) -> int:
        """Number of users the conditions (or saved segment) currently match."""

        now = now or datetime.now(timezone.utc)
        if segment_id is not None:
            filter_conditions = self.store.get_segment(segment_id, tenant_id).filter_conditions
        clauses = build_user_filters(filter_conditions, tenant_id=tenant_id, now=now)
        return self.store.count_users(clauses)
