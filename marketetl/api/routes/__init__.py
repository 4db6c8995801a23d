"""API routes package."""

from . import etl, health


__all__ = [
    "etl",
    "health",
]
