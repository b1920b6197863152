"""Request/response schemas for the timeline, notification and cron endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from .base import EngineBaseModel


# =============================================================================
# TIMELINE
# =============================================================================


class ActivityResponse(EngineBaseModel):
    """One ranked entry of the activity timeline."""

    id: str
    kind: str
    description: str
    timestamp: datetime
    due_at: datetime | None = None
    is_overdue: bool
    is_due_soon: bool
    priority: int
    urgency: str
    status: str | None = None


class TimelineResponse(EngineBaseModel):
    """A page of the timeline plus whole-timeline counts."""

    items: list[ActivityResponse]
    total_count: int = Field(..., description="Activities across all pages")
    overdue_count: int = Field(..., description="Overdue activities across all pages")
    page: int
    page_size: int
    total_pages: int


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class MarkReadResponse(EngineBaseModel):
    notification_id: UUID
    already_read: bool
    message: str


class MarkAllReadRequest(EngineBaseModel):
    notification_ids: list[UUID] = Field(..., min_length=1)


class MarkAllReadResponse(EngineBaseModel):
    cleared: int


# =============================================================================
# CRON
# =============================================================================


class SweepResponse(EngineBaseModel):
    """Summary of a missed-task sweep."""

    organizations_processed: int
    missed_count: int
    alerts_created: int
    alerts_skipped: int
    digests_created: int = 0
    errors: list[str] = []
