"""Pydantic schemas for the Activity Engine API."""

from .base import (
    EngineBaseModel,
    ErrorDetail,
    ErrorResponse,
)
from .timeline import (
    ActivityResponse,
    MarkAllReadRequest,
    MarkAllReadResponse,
    MarkReadResponse,
    SweepResponse,
    TimelineResponse,
)

__all__ = [
    # Base
    "EngineBaseModel",
    "ErrorDetail",
    "ErrorResponse",
    # Timeline
    "ActivityResponse",
    "TimelineResponse",
    # Notifications
    "MarkReadResponse",
    "MarkAllReadRequest",
    "MarkAllReadResponse",
    # Cron
    "SweepResponse",
]
