"""Celery tasks package."""

from pushadmin.tasks import scheduled, step_notifications

__all__ = ["scheduled", "step_notifications"]
