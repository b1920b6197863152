"""
Deadline Resolver: due instants, missed-deadline detection and alerts.

This module decides when assigned checklist work is due and raises a
``missed_task`` notification for each assignment that slipped past its
deadline.

Key responsibilities:
1. Resolve a template's scheduling policy into a due instant
2. Detect active, unfinished assignments whose due instant has passed
3. Emit de-duplicated alerts (one unresolved alert per assignee/template)

Every function takes ``now`` explicitly; nothing here reads the wall clock.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..models import (
    AssignmentStatus,
    ChecklistTemplate,
    Notification,
    NotificationType,
    Organization,
    ScheduleType,
    TemplateAssignment,
)
from .errors import AlertWriteError
from .pagination import end_of_day

logger = logging.getLogger(__name__)


# =============================================================================
# SCHEDULING POLICY
# =============================================================================


class PolicyKind(str, Enum):
    DEADLINE_DATE = "deadline_date"
    SPECIFIC_DATE = "specific_date"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


RECURRING_KINDS = {
    ScheduleType.DAILY.value: PolicyKind.DAILY,
    ScheduleType.WEEKLY.value: PolicyKind.WEEKLY,
    ScheduleType.MONTHLY.value: PolicyKind.MONTHLY,
}


@dataclass(frozen=True)
class SchedulePolicy:
    """The single scheduling rule in force for a template."""
    kind: PolicyKind | None
    fixed_date: date | None = None

    @classmethod
    def from_template(cls, template) -> "SchedulePolicy":
        """
        Pick the active policy for a template.

        Absolute dates win over the recurring ``schedule_type``: a stored
        ``deadline_date`` first, then ``specific_date``.
        """
        if template.deadline_date:
            return cls(PolicyKind.DEADLINE_DATE, template.deadline_date)
        if template.specific_date:
            return cls(PolicyKind.SPECIFIC_DATE, template.specific_date)

        schedule_type = (template.schedule_type or "").strip().lower()
        return cls(RECURRING_KINDS.get(schedule_type))


def organization_zone(name: str | None) -> tzinfo:
    """Resolve an organization's IANA zone name, falling back to UTC."""
    if not name or name.upper() in ("UTC", "ETC/UTC"):
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, using UTC")
        return timezone.utc


def resolve_due_instant(
    policy: SchedulePolicy,
    now: datetime,
    tz: tzinfo | None = None,
) -> datetime | None:
    """
    Compute the instant a policy's work is due, relative to ``now``.

    - deadline_date / specific_date: the stored date at 23:59:59.999
    - daily: end of the current day
    - weekly: end of the Sunday that closes the current ISO week
    - monthly: end of the last day of the current month
    - anything else: None (never eligible for "missed")

    Calendar days are taken in ``tz`` when given, otherwise in ``now``'s zone.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    local_now = now.astimezone(tz) if tz is not None else now
    zone = local_now.tzinfo

    if policy.kind in (PolicyKind.DEADLINE_DATE, PolicyKind.SPECIFIC_DATE):
        if policy.fixed_date is None:
            return None
        return end_of_day(policy.fixed_date, zone)

    today = local_now.date()

    if policy.kind == PolicyKind.DAILY:
        return end_of_day(today, zone)

    if policy.kind == PolicyKind.WEEKLY:
        sunday = today + timedelta(days=6 - today.weekday())
        return end_of_day(sunday, zone)

    if policy.kind == PolicyKind.MONTHLY:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return end_of_day(today.replace(day=last_day), zone)

    return None


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class MissedItem:
    """An unfinished assignment whose due instant has passed."""
    assignment_id: UUID
    template_id: UUID
    template_name: str
    assignee_id: UUID
    organization_id: UUID
    due_at: datetime


@dataclass
class AlertBatch:
    """Outcome of one alert emission pass."""
    created: list[Notification] = field(default_factory=list)
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class SweepResult:
    """Totals for a missed-task sweep across organizations."""
    organizations_processed: int = 0
    missed_count: int = 0
    alerts_created: int = 0
    alerts_skipped: int = 0
    errors: list[str] = field(default_factory=list)


# =============================================================================
# MISSED DETECTION
# =============================================================================


def detect_missed(
    assignments: Iterable[TemplateAssignment],
    now: datetime,
    tz: tzinfo | None = None,
) -> list[MissedItem]:
    """
    Return the assignments that are past due at ``now``.

    An assignment counts when it is active, not completed, its template
    resolves to a due instant, and ``now`` is strictly after that instant.
    Assignments whose policy yields no due instant are skipped silently.
    """
    missed = []
    for assignment in assignments:
        if assignment.status == AssignmentStatus.COMPLETED or not assignment.is_active:
            continue

        template = assignment.template
        if template is None:
            continue

        due_at = resolve_due_instant(SchedulePolicy.from_template(template), now, tz)
        if due_at is None or not now > due_at:
            continue

        missed.append(MissedItem(
            assignment_id=assignment.id,
            template_id=template.id,
            template_name=template.name,
            assignee_id=assignment.assignee_id,
            organization_id=assignment.organization_id,
            due_at=due_at,
        ))

    return missed


def missed_task_message(item: MissedItem) -> str:
    return f'Missed task: "{item.template_name}" was due {item.due_at:%b %d, %Y %H:%M}'


# =============================================================================
# DEADLINE RESOLVER
# =============================================================================


class DeadlineResolver:
    """
    Finds missed assignments in the store and records alerts for them.

    Meant to run as a background sweep (cron job or cron endpoint). Each
    alert is written in its own short transaction so one failure never
    aborts the rest of the sweep.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fetch_open_assignments(
        self,
        organization_id: UUID,
    ) -> list[TemplateAssignment]:
        """Active, unfinished assignments of active templates, templates loaded."""
        query = (
            select(TemplateAssignment)
            .join(ChecklistTemplate, TemplateAssignment.template_id == ChecklistTemplate.id)
            .where(
                TemplateAssignment.organization_id == organization_id,
                TemplateAssignment.is_active.is_(True),
                TemplateAssignment.status != AssignmentStatus.COMPLETED,
                ChecklistTemplate.is_active.is_(True),
            )
            .options(selectinload(TemplateAssignment.template))
        )

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def emit_alerts(
        self,
        missed_items: Sequence[MissedItem],
        now: datetime,
    ) -> AlertBatch:
        """
        Create a ``missed_task`` alert per missed item unless one is open.

        Repeated runs over the same items create nothing new. Failures are
        isolated per item: logged, recorded in ``errors`` and skipped.
        """
        batch = AlertBatch()

        for item in missed_items:
            try:
                notification = await self._emit_alert(item, now)
            except AlertWriteError as e:
                logger.error(str(e))
                batch.errors.append(str(e))
                continue

            if notification is None:
                batch.skipped += 1
            else:
                batch.created.append(notification)

        logger.info(
            f"Emitted {len(batch.created)} missed-task alerts, "
            f"{batch.skipped} already open, {len(batch.errors)} failed"
        )
        return batch

    async def _find_open_alert(self, session: AsyncSession, item: MissedItem) -> UUID | None:
        result = await session.execute(
            select(Notification.id).where(
                Notification.assignee_id == item.assignee_id,
                Notification.template_id == item.template_id,
                Notification.type == NotificationType.MISSED_TASK.value,
                Notification.is_read.is_(False),
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def _emit_alert(self, item: MissedItem, now: datetime) -> Notification | None:
        """Check-then-insert one alert. Returns None when an alert is already open."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if await self._find_open_alert(session, item) is not None:
                        return None

                    notification = Notification(
                        organization_id=item.organization_id,
                        assignee_id=item.assignee_id,
                        template_id=item.template_id,
                        type=NotificationType.MISSED_TASK.value,
                        message=missed_task_message(item),
                        is_read=False,
                        created_at=now.astimezone(timezone.utc),
                    )
                    session.add(notification)
            return notification

        except IntegrityError as e:
            # The unique index also fires when an overlapping sweep won the race
            if await self._open_alert_exists(item):
                logger.info(
                    f"Alert for assignee {item.assignee_id} / template {item.template_id} "
                    f"already written by a concurrent sweep"
                )
                return None
            raise AlertWriteError(item.assignment_id, str(e.orig)) from e
        except SQLAlchemyError as e:
            raise AlertWriteError(item.assignment_id, str(e)) from e
        except Exception as e:
            # Driver transport errors are not always wrapped by SQLAlchemy
            raise AlertWriteError(item.assignment_id, f"{type(e).__name__}: {e}") from e

    async def _open_alert_exists(self, item: MissedItem) -> bool:
        try:
            async with self._session_factory() as session:
                return await self._find_open_alert(session, item) is not None
        except Exception as e:
            raise AlertWriteError(item.assignment_id, f"{type(e).__name__}: {e}") from e

    async def sweep(
        self,
        now: datetime,
        organization_id: UUID | None = None,
    ) -> SweepResult:
        """
        Detect and alert missed assignments for one or all organizations.

        Deadlines are resolved in each organization's own timezone.
        """
        query = select(Organization)
        if organization_id:
            query = query.where(Organization.id == organization_id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            organizations = list(result.scalars().all())

        sweep_result = SweepResult()

        for organization in organizations:
            try:
                assignments = await self.fetch_open_assignments(organization.id)
            except Exception as e:
                error = f"Failed to load assignments for organization {organization.id}: {e}"
                logger.error(error)
                sweep_result.errors.append(error)
                continue

            missed = detect_missed(
                assignments,
                now,
                tz=organization_zone(organization.timezone),
            )
            batch = await self.emit_alerts(missed, now)

            sweep_result.organizations_processed += 1
            sweep_result.missed_count += len(missed)
            sweep_result.alerts_created += len(batch.created)
            sweep_result.alerts_skipped += batch.skipped
            sweep_result.errors.extend(batch.errors)

            logger.info(
                f"Organization {organization.id}: {len(assignments)} open assignments, "
                f"{len(missed)} missed, {len(batch.created)} alerts created"
            )

        return sweep_result
