"""API endpoint modules for v1."""

from pushadmin.api.v1.endpoints import (
    cron,
    notifications,
    segments,
    step_sequences,
    subscriptions,
    tracking,
    users,
)

__all__ = [
    "cron",
    "notifications",
    "segments",
    "step_sequences",
    "subscriptions",
    "tracking",
    "users",
]
