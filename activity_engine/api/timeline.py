"""
Timeline API: the ranked activity feed behind the dashboard.

A failed source fetch returns 503 so the dashboard shows "timeline
unavailable, retry" instead of a partially merged list.
"""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from ..core import OrganizationIdDep, SessionFactoryDep, SettingsDep
from ..schemas import ActivityResponse, ErrorResponse, TimelineResponse
from ..services.errors import OrganizationNotFoundError, SourceFetchError
from ..services.timeline import Activity, TimelineAggregator, TimelineConfig


router = APIRouter(prefix="/timeline", tags=["timeline"])


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_timeline_aggregator(
    session_factory: SessionFactoryDep,
    settings: SettingsDep,
) -> TimelineAggregator:
    return TimelineAggregator(session_factory, config=TimelineConfig.from_settings(settings))


TimelineAggregatorDep = Annotated[TimelineAggregator, Depends(get_timeline_aggregator)]


def to_activity_response(activity: Activity) -> ActivityResponse:
    return ActivityResponse(
        id=activity.id,
        kind=activity.kind.value,
        description=activity.description,
        timestamp=activity.timestamp,
        due_at=activity.due_at,
        is_overdue=activity.is_overdue,
        is_due_soon=activity.is_due_soon,
        priority=activity.priority,
        urgency=activity.urgency,
        status=activity.status,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.get(
    "",
    response_model=TimelineResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Get the ranked activity timeline",
    description="""
    Merge recent assignments, submissions, checklist instances and
    missed-task alerts into one ranked, paginated list.

    `overdue_count` covers the whole timeline, not just the returned page.
    """,
)
async def get_timeline(
    organization_id: OrganizationIdDep,
    aggregator: TimelineAggregatorDep,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=100),
    assignee_id: UUID | None = Query(default=None, description="Only this staff member's activity"),
):
    """Build the timeline for the caller's organization."""
    now = datetime.now(timezone.utc)

    try:
        timeline = await aggregator.build_timeline(
            organization_id,
            now,
            page=page,
            page_size=page_size,
            assignee_id=assignee_id,
        )
    except OrganizationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SourceFetchError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=ErrorResponse(
                error="timeline_unavailable",
                message="Timeline unavailable, retry",
            ).model_dump(),
        )

    return TimelineResponse(
        items=[to_activity_response(a) for a in timeline.items],
        total_count=timeline.total_count,
        overdue_count=timeline.overdue_count,
        page=timeline.page,
        page_size=timeline.page_size,
        total_pages=timeline.total_pages,
    )
