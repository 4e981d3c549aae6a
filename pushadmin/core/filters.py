"""Translate segment filter conditions into SQLAlchemy predicates over users."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement

from pushadmin.db.models.user import User
from pushadmin.utils.exceptions import ValidationError

ENGAGEMENT_THRESHOLD = 50

SUPPORTED_OPERATORS: dict[str, tuple[str, ...]] = {
    "registered_days_ago": ("gte", "lte"),
    "device_type": ("eq", "in"),
    "browser": ("eq", "in"),
    "engagement_level": ("eq",),
    "has_tag": ("eq", "in"),
}


def _conditions(filter_conditions: Any) -> list[dict[str, Any]]:
    if not isinstance(filter_conditions, dict):
        return []
    conditions = filter_conditions.get("conditions")
    if not isinstance(conditions, list):
        return []
    return [item for item in conditions if isinstance(item, dict)]


def _match_attribute(column, operator: str, value: Any) -> ColumnElement[bool] | None:
    if operator == "eq":
        return column == value
    if operator == "in" and isinstance(value, (list, tuple)):
        return column.in_(list(value))
    return None


def _registered_days_ago(operator: str, value: Any, now: datetime) -> ColumnElement[bool] | None:
    try:
        days = float(value)
    except (TypeError, ValueError):
        return None
    cutoff = now - timedelta(days=days)
    # "registered at least N days ago" means the account predates the cutoff
    if operator == "gte":
        return User.created_at <= cutoff
    if operator == "lte":
        return User.created_at >= cutoff
    return None


def _engagement_level(operator: str, value: Any) -> ColumnElement[bool] | None:
    if operator != "eq":
        return None
    if value == "active":
        return User.engagement_score >= ENGAGEMENT_THRESHOLD
    if value == "inactive":
        return User.engagement_score < ENGAGEMENT_THRESHOLD
    return None


def build_user_filters(
    filter_conditions: Any,
    *,
    tenant_id: int | None = None,
    now: datetime,
) -> list[ColumnElement[bool]]:
    """Return the clauses to AND together when selecting a user audience.

    Evaluation is lenient: unknown fields, unsupported operators and
    malformed values are skipped. ``has_tag`` is accepted but has no
    effect because users carry no tags yet.
    """

    clauses: list[ColumnElement[bool]] = []
    if tenant_id is not None:
        clauses.append(User.tenant_id == tenant_id)

    for condition in _conditions(filter_conditions):
        field = condition.get("field")
        operator = condition.get("operator")
        value = condition.get("value")

        clause: ColumnElement[bool] | None = None
        if field == "registered_days_ago":
            clause = _registered_days_ago(operator, value, now)
        elif field == "device_type":
            clause = _match_attribute(User.device_type, operator, value)
        elif field == "browser":
            clause = _match_attribute(User.browser, operator, value)
        elif field == "engagement_level":
            clause = _engagement_level(operator, value)
        elif field == "has_tag":
            logger.debug("has_tag condition ignored; tags are not tracked", value=value)
            continue

        if clause is None:
            logger.debug("Ignoring unsupported filter condition", field=field, operator=operator)
            continue
        clauses.append(clause)

    return clauses


def validate_filter_conditions(filter_conditions: Any) -> None:
    """Strict structural check applied when a segment is saved."""

    if not isinstance(filter_conditions, dict):
        raise ValidationError("filter_conditions must be an object")
    conditions = filter_conditions.get("conditions")
    if conditions is None:
        return
    if not isinstance(conditions, list):
        raise ValidationError("filter_conditions.conditions must be an array")
    for condition in conditions:
        if not isinstance(condition, dict) or not condition.get("field") or not condition.get("operator"):
            raise ValidationError("Each condition must have field and operator")
        field = condition["field"]
        if field not in SUPPORTED_OPERATORS:
            raise ValidationError(f"Invalid field: {field}", details={"field": field})
        if condition["operator"] not in SUPPORTED_OPERATORS[field]:
            raise ValidationError(
                f"Invalid operator: {condition['operator']}",
                details={"field": field, "allowed": list(SUPPORTED_OPERATORS[field])},
            )
