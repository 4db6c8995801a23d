"""Pydantic schemas for API request/response validation."""

from .common import ErrorResponse, HealthResponse
from .etl import BatchResponse, InstrumentResultSchema, StartResponse, StopResponse


__all__ = [
    "BatchResponse",
    "ErrorResponse",
    "HealthResponse",
    "InstrumentResultSchema",
    "StartResponse",
    "StopResponse",
]
