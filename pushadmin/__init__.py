"""Web push administration service."""

__version__ = "0.1.0"
