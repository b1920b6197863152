"""
Reminder digests for staff with deadlines coming up or already passed.

Only templates with an absolute date (``deadline_date`` or ``specific_date``)
take part; recurring schedules are covered by the missed-task alerts.
Each assignee gets at most one ``daily_digest`` notification per cooldown
period.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..core.config import Settings
from ..models import (
    AssignmentStatus,
    ChecklistTemplate,
    Notification,
    NotificationType,
    Organization,
    TemplateAssignment,
)
from .deadline_resolver import (
    PolicyKind,
    SchedulePolicy,
    organization_zone,
    resolve_due_instant,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class ReminderConfig:
    """Configuration for reminder digests."""

    # Tasks due within this many days are "upcoming"
    window_days: int = 3

    # Minimum hours between two digests for the same assignee
    cooldown_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReminderConfig":
        return cls(
            window_days=settings.digest_window_days,
            cooldown_hours=settings.digest_cooldown_hours,
        )


DEFAULT_CONFIG = ReminderConfig()


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class DueTask:
    template_name: str
    due_at: datetime
    days: int


@dataclass
class AssigneeDigest:
    """Tasks collected for one staff member."""
    assignee_id: UUID
    organization_id: UUID
    upcoming: list[DueTask] = field(default_factory=list)
    overdue: list[DueTask] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.upcoming and not self.overdue

    @property
    def message(self) -> str:
        if self.overdue:
            return f"Task Digest: {len(self.overdue)} overdue, {len(self.upcoming)} upcoming"
        plural = "s" if len(self.upcoming) > 1 else ""
        return f"Task Reminder: {len(self.upcoming)} task{plural} due soon"


@dataclass
class DigestBatch:
    notifications: list[Notification] = field(default_factory=list)
    assignees_processed: int = 0
    skipped_cooldown: int = 0
    errors: list[str] = field(default_factory=list)


def days_until(due_at: datetime, now: datetime) -> int:
    """Whole days until ``due_at``, rounded up; negative once overdue."""
    return math.ceil((due_at - now).total_seconds() / SECONDS_PER_DAY)


def collect_digests(
    assignments: list[TemplateAssignment],
    now: datetime,
    tz=None,
    config: ReminderConfig = DEFAULT_CONFIG,
) -> list[AssigneeDigest]:
    """Group date-bound open assignments by assignee into upcoming/overdue lists."""
    digests: dict[UUID, AssigneeDigest] = {}

    for assignment in assignments:
        if assignment.status == AssignmentStatus.COMPLETED or not assignment.is_active:
            continue
        template = assignment.template
        if template is None:
            continue

        policy = SchedulePolicy.from_template(template)
        if policy.kind not in (PolicyKind.DEADLINE_DATE, PolicyKind.SPECIFIC_DATE):
            continue

        due_at = resolve_due_instant(policy, now, tz)
        days = days_until(due_at, now)

        digest = digests.setdefault(
            assignment.assignee_id,
            AssigneeDigest(
                assignee_id=assignment.assignee_id,
                organization_id=assignment.organization_id,
            ),
        )
        task = DueTask(template_name=template.name, due_at=due_at, days=days)

        if 0 < days <= config.window_days:
            digest.upcoming.append(task)
        elif days < 0:
            digest.overdue.append(task)

    return [d for d in digests.values() if not d.is_empty]


# =============================================================================
# REMINDER SERVICE
# =============================================================================


class ReminderService:
    """Writes ``daily_digest`` notifications for upcoming and overdue work."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ReminderConfig = DEFAULT_CONFIG,
    ):
        self._session_factory = session_factory
        self._config = config

    async def generate_digests(
        self,
        now: datetime,
        organization_id: UUID | None = None,
    ) -> DigestBatch:
        """Create one digest per assignee with due work, honoring the cooldown."""
        batch = DigestBatch()

        query = select(Organization)
        if organization_id:
            query = query.where(Organization.id == organization_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            organizations = list(result.scalars().all())

        for organization in organizations:
            assignments = await self._fetch_dated_assignments(organization.id)
            digests = collect_digests(
                assignments,
                now,
                tz=organization_zone(organization.timezone),
                config=self._config,
            )

            for digest in digests:
                batch.assignees_processed += 1
                try:
                    notification = await self._write_digest(digest, now)
                except Exception as e:
                    error = f"Failed to create digest for assignee {digest.assignee_id}: {e}"
                    logger.error(error)
                    batch.errors.append(error)
                    continue

                if notification is None:
                    batch.skipped_cooldown += 1
                else:
                    batch.notifications.append(notification)
                    logger.info(
                        f"Created digest for assignee {digest.assignee_id} "
                        f"({len(digest.upcoming)} upcoming, {len(digest.overdue)} overdue)"
                    )

        return batch

    async def _fetch_dated_assignments(self, organization_id: UUID) -> list[TemplateAssignment]:
        query = (
            select(TemplateAssignment)
            .join(ChecklistTemplate, TemplateAssignment.template_id == ChecklistTemplate.id)
            .where(
                TemplateAssignment.organization_id == organization_id,
                TemplateAssignment.is_active.is_(True),
                TemplateAssignment.status != AssignmentStatus.COMPLETED,
                (ChecklistTemplate.deadline_date.isnot(None))
                | (ChecklistTemplate.specific_date.isnot(None)),
            )
            .options(selectinload(TemplateAssignment.template))
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _write_digest(self, digest: AssigneeDigest, now: datetime) -> Notification | None:
        now = now.astimezone(timezone.utc)
        cooldown_start = now - timedelta(hours=self._config.cooldown_hours)

        async with self._session_factory() as session:
            async with session.begin():
                recent = await session.execute(
                    select(Notification.id).where(
                        Notification.assignee_id == digest.assignee_id,
                        Notification.type == NotificationType.DAILY_DIGEST.value,
                        Notification.created_at >= cooldown_start,
                    ).limit(1)
                )
                if recent.scalar_one_or_none() is not None:
                    return None

                notification = Notification(
                    organization_id=digest.organization_id,
                    assignee_id=digest.assignee_id,
                    type=NotificationType.DAILY_DIGEST.value,
                    message=digest.message,
                    is_read=False,
                    created_at=now,
                )
                session.add(notification)
        return notification
