"""
Tests for reminder digests.

These tests verify:
1. Date-bound open assignments are grouped per assignee
2. Digest messages follow the overdue/upcoming wording
3. The cooldown prevents a second digest within 24 hours
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import select

from activity_engine.models import (
    AssignmentStatus,
    ChecklistTemplate,
    Notification,
    NotificationType,
    TemplateAssignment,
)
from activity_engine.services.reminders import (
    AssigneeDigest,
    DueTask,
    ReminderConfig,
    ReminderService,
    collect_digests,
    days_until,
)


UTC = timezone.utc
NOW = datetime(2025, 3, 12, 15, 0, tzinfo=UTC)


def dated_assignment(assignee_id, deadline: date | None, schedule_type: str | None = None, **kwargs):
    template = ChecklistTemplate(
        id=uuid4(),
        name=f"Task due {deadline}",
        deadline_date=deadline,
        schedule_type=schedule_type,
    )
    return TemplateAssignment(
        id=uuid4(),
        organization_id=uuid4(),
        template=template,
        assignee_id=assignee_id,
        status=kwargs.get("status", AssignmentStatus.PENDING),
        is_active=kwargs.get("is_active", True),
    )


class TestDaysUntil:

    def test_rounds_up(self):
        assert days_until(NOW + timedelta(hours=1), NOW) == 1
        assert days_until(NOW + timedelta(days=2, hours=9), NOW) == 3

    def test_negative_once_a_full_day_late(self):
        assert days_until(NOW - timedelta(days=1, hours=2), NOW) == -1


class TestCollectDigests:

    def test_groups_by_assignee(self):
        alice, ben = uuid4(), uuid4()
        assignments = [
            dated_assignment(alice, date(2025, 3, 14)),
            dated_assignment(alice, date(2025, 3, 9)),
            dated_assignment(ben, date(2025, 3, 13)),
        ]

        digests = {d.assignee_id: d for d in collect_digests(assignments, NOW)}

        assert set(digests) == {alice, ben}
        assert len(digests[alice].upcoming) == 1
        assert len(digests[alice].overdue) == 1
        assert len(digests[ben].upcoming) == 1
        assert digests[ben].overdue == []

    def test_far_future_and_recurring_are_left_out(self):
        assignee = uuid4()
        assignments = [
            dated_assignment(assignee, date(2025, 4, 30)),
            dated_assignment(assignee, None, schedule_type="daily"),
        ]
        assert collect_digests(assignments, NOW) == []

    def test_completed_and_inactive_are_left_out(self):
        assignee = uuid4()
        assignments = [
            dated_assignment(assignee, date(2025, 3, 13), status=AssignmentStatus.COMPLETED),
            dated_assignment(assignee, date(2025, 3, 13), is_active=False),
        ]
        assert collect_digests(assignments, NOW) == []

    def test_window_is_configurable(self):
        assignments = [dated_assignment(uuid4(), date(2025, 3, 20))]

        assert collect_digests(assignments, NOW) == []
        assert len(collect_digests(assignments, NOW, config=ReminderConfig(window_days=10))) == 1


class TestDigestMessage:

    def _task(self):
        return DueTask(template_name="x", due_at=NOW, days=1)

    def test_overdue_digest(self):
        digest = AssigneeDigest(
            assignee_id=uuid4(),
            organization_id=uuid4(),
            upcoming=[self._task()],
            overdue=[self._task(), self._task()],
        )
        assert digest.message == "Task Digest: 2 overdue, 1 upcoming"

    def test_single_upcoming_reminder(self):
        digest = AssigneeDigest(assignee_id=uuid4(), organization_id=uuid4(), upcoming=[self._task()])
        assert digest.message == "Task Reminder: 1 task due soon"

    def test_several_upcoming_reminder(self):
        digest = AssigneeDigest(
            assignee_id=uuid4(),
            organization_id=uuid4(),
            upcoming=[self._task(), self._task()],
        )
        assert digest.message == "Task Reminder: 2 tasks due soon"


class TestReminderService:

    async def test_writes_one_digest_per_assignee(
        self, session, session_factory, make_template, make_assignment, user_id, now,
    ):
        await make_assignment(await make_template(deadline_date=date(2025, 3, 14)))
        await make_assignment(await make_template(deadline_date=date(2025, 3, 5)))

        batch = await ReminderService(session_factory).generate_digests(now)

        assert batch.assignees_processed == 1
        assert batch.errors == []
        assert len(batch.notifications) == 1
        notification = batch.notifications[0]
        assert notification.assignee_id == user_id
        assert notification.type == NotificationType.DAILY_DIGEST.value
        assert notification.message == "Task Digest: 1 overdue, 1 upcoming"

    async def test_cooldown_blocks_second_digest(
        self, session, session_factory, make_template, make_assignment, now,
    ):
        await make_assignment(await make_template(deadline_date=date(2025, 3, 13)))
        service = ReminderService(session_factory)

        first = await service.generate_digests(now)
        second = await service.generate_digests(now + timedelta(hours=6))
        third = await service.generate_digests(now + timedelta(hours=25))

        assert len(first.notifications) == 1
        assert second.notifications == []
        assert second.skipped_cooldown == 1
        assert len(third.notifications) == 1

        result = await session.execute(
            select(Notification).where(Notification.type == NotificationType.DAILY_DIGEST.value)
        )
        assert len(result.scalars().all()) == 2

    async def test_nothing_due_writes_nothing(
        self, session_factory, make_template, make_assignment, now,
    ):
        await make_assignment(await make_template(schedule_type="weekly"))

        batch = await ReminderService(session_factory).generate_digests(now)

        assert batch.notifications == []
        assert batch.assignees_processed == 0
