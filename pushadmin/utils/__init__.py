"""Utility helpers package."""

from pushadmin.utils.exceptions import best_effort

__all__ = ["best_effort"]
