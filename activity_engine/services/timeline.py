"""
Timeline Aggregator: one ranked activity feed out of four record streams.

Assignments, submitted reports, checklist instances and missed-task alerts
are fetched concurrently, normalized into ``Activity`` records with derived
urgency, merged, ranked and paginated. The aggregator never writes.

Ranking:
    0  alert (missed task)
    1  overdue assignment / checklist
    2  due-soon assignment / checklist
    3  other open assignment / checklist
    4  submission
    5  completion

Ties on priority are broken by timestamp, most recent first.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Awaitable, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..core.config import Settings
from ..models import (
    AssignmentStatus,
    DailyChecklist,
    Notification,
    NotificationType,
    Organization,
    SubmittedReport,
    TemplateAssignment,
)
from .deadline_resolver import organization_zone
from .errors import OrganizationNotFoundError, SourceFetchError
from .pagination import end_of_day, ensure_utc, paginate, query_window

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class TimelineConfig:
    """Configuration for timeline aggregation."""

    # Open items due within this many days are "due soon"
    due_soon_days: int = 3

    # Each source only returns records from this lookback window
    lookback_days: int = 30

    # Default page size
    page_size: int = 10

    # Per-source record caps
    assignment_fetch_limit: int = 200
    source_fetch_limit: int = 100

    # Budget for all source fetches together
    fetch_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimelineConfig":
        return cls(
            due_soon_days=settings.due_soon_days,
            lookback_days=settings.lookback_days,
            page_size=settings.timeline_page_size,
            assignment_fetch_limit=settings.assignment_fetch_limit,
            source_fetch_limit=settings.source_fetch_limit,
            fetch_timeout_seconds=settings.source_fetch_timeout_seconds,
        )


DEFAULT_CONFIG = TimelineConfig()


# =============================================================================
# ACTIVITY
# =============================================================================


class ActivityKind(str, Enum):
    ASSIGNMENT = "assignment"
    COMPLETION = "completion"
    SUBMISSION = "submission"
    PENDING = "pending"
    ALERT = "alert"


PRIORITY_ALERT = 0
PRIORITY_OVERDUE = 1
PRIORITY_DUE_SOON = 2
PRIORITY_OPEN = 3
PRIORITY_SUBMISSION = 4
PRIORITY_COMPLETION = 5


@dataclass
class Activity:
    """Normalized projection of one source record. Never persisted."""
    id: str
    kind: ActivityKind
    description: str
    timestamp: datetime
    priority: int
    due_at: datetime | None = None
    is_overdue: bool = False
    is_due_soon: bool = False
    source_id: UUID | None = None
    status: str | None = None

    @property
    def urgency(self) -> str:
        if self.is_overdue:
            return "overdue"
        if self.is_due_soon:
            return "due_soon"
        return "normal"


@dataclass
class SourceRecords:
    """Raw records fetched for one aggregation run."""
    assignments: list[TemplateAssignment] = field(default_factory=list)
    submissions: list[SubmittedReport] = field(default_factory=list)
    checklists: list[DailyChecklist] = field(default_factory=list)
    alerts: list[Notification] = field(default_factory=list)


@dataclass
class TimelinePage:
    """One page of the ranked timeline plus whole-timeline counts."""
    items: list[Activity]
    total_count: int
    overdue_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size


# =============================================================================
# NORMALIZATION
# =============================================================================


def derive_urgency(
    due_at: datetime | None,
    now: datetime,
    due_soon_window: timedelta,
) -> tuple[bool, bool, int]:
    """Return ``(is_overdue, is_due_soon, priority)`` for an open item."""
    if due_at is None:
        return False, False, PRIORITY_OPEN
    if due_at < now:
        return True, False, PRIORITY_OVERDUE
    if due_at - now < due_soon_window:
        return False, True, PRIORITY_DUE_SOON
    return False, False, PRIORITY_OPEN


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def _template_name(record: Any) -> str:
    template = getattr(record, "template", None)
    return template.name if template is not None else "Untitled checklist"


def normalize_alert(notification: Notification) -> Activity:
    return Activity(
        id=f"alert-{notification.id}",
        kind=ActivityKind.ALERT,
        description=notification.message,
        timestamp=ensure_utc(notification.created_at),
        priority=PRIORITY_ALERT,
        is_overdue=True,
        source_id=notification.id,
        status="read" if notification.is_read else "unread",
    )


def normalize_assignment(
    assignment: TemplateAssignment,
    now: datetime,
    tz: tzinfo,
    due_soon_window: timedelta,
) -> Activity:
    """
    Project an assignment.

    The due instant comes from the assignment's stored ``scheduled_date``;
    it is not re-resolved from the template's policy.
    """
    name = _template_name(assignment)

    if assignment.status == AssignmentStatus.COMPLETED:
        return Activity(
            id=f"assignment-{assignment.id}",
            kind=ActivityKind.COMPLETION,
            description=f'Completed "{name}"',
            timestamp=ensure_utc(assignment.completed_at or assignment.assigned_at),
            priority=PRIORITY_COMPLETION,
            source_id=assignment.id,
            status=AssignmentStatus.COMPLETED.value,
        )

    due_at = end_of_day(assignment.scheduled_date, tz) if assignment.scheduled_date else None
    is_overdue, is_due_soon, priority = derive_urgency(due_at, now, due_soon_window)

    return Activity(
        id=f"assignment-{assignment.id}",
        kind=ActivityKind.ASSIGNMENT,
        description=f'Assigned "{name}"',
        timestamp=ensure_utc(assignment.assigned_at),
        priority=priority,
        due_at=due_at,
        is_overdue=is_overdue,
        is_due_soon=is_due_soon,
        source_id=assignment.id,
        status=_status_value(assignment.status),
    )


def normalize_submission(submission: SubmittedReport) -> Activity:
    return Activity(
        id=f"submission-{submission.id}",
        kind=ActivityKind.SUBMISSION,
        description=f'Submitted "{submission.template_name}"',
        timestamp=ensure_utc(submission.submitted_at),
        priority=PRIORITY_SUBMISSION,
        source_id=submission.id,
        status=submission.status,
    )


def normalize_checklist(
    checklist: DailyChecklist,
    now: datetime,
    tz: tzinfo,
    due_soon_window: timedelta,
) -> Activity:
    name = _template_name(checklist)

    if checklist.status == AssignmentStatus.COMPLETED:
        return Activity(
            id=f"checklist-{checklist.id}",
            kind=ActivityKind.COMPLETION,
            description=f'Completed "{name}"',
            timestamp=ensure_utc(checklist.completed_at or checklist.updated_at),
            priority=PRIORITY_COMPLETION,
            source_id=checklist.id,
            status=AssignmentStatus.COMPLETED.value,
        )

    due_at = end_of_day(checklist.day, tz) if checklist.day else None
    is_overdue, is_due_soon, priority = derive_urgency(due_at, now, due_soon_window)

    return Activity(
        id=f"checklist-{checklist.id}",
        kind=ActivityKind.PENDING,
        description=f'"{name}" checklist pending',
        timestamp=ensure_utc(checklist.updated_at),
        priority=priority,
        due_at=due_at,
        is_overdue=is_overdue,
        is_due_soon=is_due_soon,
        source_id=checklist.id,
        status=_status_value(checklist.status),
    )


def normalize_sources(
    records: SourceRecords,
    now: datetime,
    tz: tzinfo = timezone.utc,
    config: TimelineConfig = DEFAULT_CONFIG,
) -> list[Activity]:
    """Merge every source into one unordered list. No cross-source de-duplication."""
    window = timedelta(days=config.due_soon_days)

    activities = [normalize_alert(n) for n in records.alerts]
    activities.extend(normalize_assignment(a, now, tz, window) for a in records.assignments)
    activities.extend(normalize_submission(s) for s in records.submissions)
    activities.extend(normalize_checklist(c, now, tz, window) for c in records.checklists)
    return activities


def sort_activities(activities: Sequence[Activity]) -> list[Activity]:
    """Priority ascending, then most recent first."""
    return sorted(
        activities,
        key=lambda a: (a.priority, -a.timestamp.timestamp()),
    )


def count_overdue(activities: Sequence[Activity]) -> int:
    return sum(1 for a in activities if a.is_overdue)


# =============================================================================
# TIMELINE AGGREGATOR
# =============================================================================


class TimelineAggregator:
    """
    Builds the ranked activity timeline for a tenant.

    Each source is read with its own session so the four queries can run
    concurrently. If any of them fails or the fetch budget runs out, the
    whole call fails with SourceFetchError.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: TimelineConfig = DEFAULT_CONFIG,
    ):
        self._session_factory = session_factory
        self._config = config

    async def build_timeline(
        self,
        organization_id: UUID,
        now: datetime,
        page: int = 1,
        page_size: int | None = None,
        assignee_id: UUID | None = None,
    ) -> TimelinePage:
        """
        Fetch, normalize, rank and paginate a tenant's recent activity.

        ``overdue_count`` covers the whole ranked list, not just the page.
        """
        if page_size is None:
            page_size = self._config.page_size
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be >= 1")

        records, zone = await self.fetch_sources(organization_id, now, assignee_id)

        activities = sort_activities(
            normalize_sources(records, now, zone, self._config)
        )
        sliced = paginate(activities, page, page_size)

        return TimelinePage(
            items=sliced.items,
            total_count=sliced.total,
            overdue_count=count_overdue(activities),
            page=page,
            page_size=page_size,
        )

    async def fetch_sources(
        self,
        organization_id: UUID,
        now: datetime,
        assignee_id: UUID | None = None,
    ) -> tuple[SourceRecords, tzinfo]:
        """Run all source queries concurrently under one timeout."""
        since = query_window(now.astimezone(timezone.utc), self._config.lookback_days)

        fetches = {
            "organization": self._fetch_organization(organization_id),
            "assignments": self._fetch_assignments(organization_id, since, assignee_id),
            "submissions": self._fetch_submissions(organization_id, since, assignee_id),
            "checklists": self._fetch_checklists(organization_id, since, assignee_id),
            "alerts": self._fetch_alerts(organization_id, since, assignee_id),
        }
        tasks = [
            asyncio.create_task(self._guarded(name, coro))
            for name, coro in fetches.items()
        ]

        try:
            organization, assignments, submissions, checklists, alerts = await asyncio.wait_for(
                asyncio.gather(*tasks),
                timeout=self._config.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                f"Timeline fetch for organization {organization_id} timed out "
                f"after {self._config.fetch_timeout_seconds}s"
            )
            raise SourceFetchError(
                "timeline sources",
                f"timed out after {self._config.fetch_timeout_seconds}s",
            ) from e
        finally:
            # Nothing fetched after a failure or cancellation may be merged
            for task in tasks:
                if not task.done():
                    task.cancel()

        if organization is None:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")

        records = SourceRecords(
            assignments=assignments,
            submissions=submissions,
            checklists=checklists,
            alerts=alerts,
        )
        return records, organization_zone(organization.timezone)

    async def _guarded(self, source: str, fetch: Awaitable[Any]) -> Any:
        try:
            return await fetch
        except Exception as e:
            logger.error(f"Source fetch failed for {source}: {e}")
            raise SourceFetchError(source, str(e)) from e

    # =========================================================================
    # SOURCE QUERIES
    # =========================================================================

    async def _fetch_organization(self, organization_id: UUID) -> Organization | None:
        async with self._session_factory() as session:
            return await session.get(Organization, organization_id)

    async def _fetch_assignments(
        self,
        organization_id: UUID,
        since: datetime,
        assignee_id: UUID | None,
    ) -> list[TemplateAssignment]:
        query = (
            select(TemplateAssignment)
            .where(
                TemplateAssignment.organization_id == organization_id,
                TemplateAssignment.is_active.is_(True),
                or_(
                    TemplateAssignment.assigned_at >= since,
                    TemplateAssignment.completed_at >= since,
                ),
            )
            .options(selectinload(TemplateAssignment.template))
            .order_by(TemplateAssignment.assigned_at.desc())
            .limit(self._config.assignment_fetch_limit)
        )
        if assignee_id:
            query = query.where(TemplateAssignment.assignee_id == assignee_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _fetch_submissions(
        self,
        organization_id: UUID,
        since: datetime,
        assignee_id: UUID | None,
    ) -> list[SubmittedReport]:
        query = (
            select(SubmittedReport)
            .where(
                SubmittedReport.organization_id == organization_id,
                SubmittedReport.submitted_at >= since,
            )
            .order_by(SubmittedReport.submitted_at.desc())
            .limit(self._config.source_fetch_limit)
        )
        if assignee_id:
            query = query.where(SubmittedReport.submitter_id == assignee_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _fetch_checklists(
        self,
        organization_id: UUID,
        since: datetime,
        assignee_id: UUID | None,
    ) -> list[DailyChecklist]:
        query = (
            select(DailyChecklist)
            .where(
                DailyChecklist.organization_id == organization_id,
                DailyChecklist.updated_at >= since,
            )
            .options(selectinload(DailyChecklist.template))
            .order_by(DailyChecklist.updated_at.desc())
            .limit(self._config.source_fetch_limit)
        )
        if assignee_id:
            query = query.where(DailyChecklist.assignee_id == assignee_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _fetch_alerts(
        self,
        organization_id: UUID,
        since: datetime,
        assignee_id: UUID | None,
    ) -> list[Notification]:
        query = (
            select(Notification)
            .where(
                Notification.organization_id == organization_id,
                Notification.type == NotificationType.MISSED_TASK.value,
                Notification.is_read.is_(False),
                Notification.created_at >= since,
            )
            .order_by(Notification.created_at.desc())
            .limit(self._config.source_fetch_limit)
        )
        if assignee_id:
            query = query.where(Notification.assignee_id == assignee_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
