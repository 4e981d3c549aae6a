"""API version 1."""

from pushadmin.api.v1.api import api_router

__all__ = ["api_router"]
