"""Shared fixtures: a file-backed SQLite store and record factories."""

from datetime import date, datetime, timezone
from uuid import UUID, uuid4

import pytest

from activity_engine.core.database import build_engine, build_session_factory
from activity_engine.models import (
    AssignmentStatus,
    Base,
    ChecklistTemplate,
    DailyChecklist,
    Notification,
    NotificationType,
    Organization,
    Profile,
    SubmittedReport,
    TemplateAssignment,
)


# Wednesday, 12 March 2025, 15:00 UTC
NOW = datetime(2025, 3, 12, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def org_id(session) -> UUID:
    organization = Organization(id=uuid4(), name="Harbour Clinic", timezone="UTC")
    session.add(organization)
    await session.commit()
    return organization.id


@pytest.fixture
async def user_id(session, org_id) -> UUID:
    profile = Profile(id=uuid4(), organization_id=org_id, email="sam@example.com", full_name="Sam Reyes")
    session.add(profile)
    await session.commit()
    return profile.id


@pytest.fixture
def make_template(session, org_id):
    async def _make(
        name: str = "Fridge temperature log",
        schedule_type: str | None = None,
        deadline_date: date | None = None,
        specific_date: date | None = None,
        organization_id: UUID | None = None,
    ) -> ChecklistTemplate:
        template = ChecklistTemplate(
            id=uuid4(),
            organization_id=organization_id or org_id,
            name=name,
            schedule_type=schedule_type,
            deadline_date=deadline_date,
            specific_date=specific_date,
            is_active=True,
        )
        session.add(template)
        await session.commit()
        return template

    return _make


@pytest.fixture
def make_assignment(session, org_id, user_id):
    async def _make(
        template: ChecklistTemplate,
        status: AssignmentStatus = AssignmentStatus.PENDING,
        assigned_at: datetime = NOW,
        completed_at: datetime | None = None,
        scheduled_date: date | None = None,
        assignee_id: UUID | None = None,
        is_active: bool = True,
    ) -> TemplateAssignment:
        assignment = TemplateAssignment(
            id=uuid4(),
            organization_id=template.organization_id,
            template_id=template.id,
            assignee_id=assignee_id or user_id,
            status=status,
            assigned_at=assigned_at,
            completed_at=completed_at,
            scheduled_date=scheduled_date,
            is_active=is_active,
        )
        session.add(assignment)
        await session.commit()
        return assignment

    return _make


@pytest.fixture
def make_submission(session, org_id, user_id):
    async def _make(
        template_name: str = "Incident report",
        submitted_at: datetime = NOW,
    ) -> SubmittedReport:
        submission = SubmittedReport(
            id=uuid4(),
            organization_id=org_id,
            submitter_id=user_id,
            template_name=template_name,
            submitted_at=submitted_at,
            status="completed",
        )
        session.add(submission)
        await session.commit()
        return submission

    return _make


@pytest.fixture
def make_checklist(session, org_id, user_id):
    async def _make(
        template: ChecklistTemplate,
        status: AssignmentStatus = AssignmentStatus.PENDING,
        day: date | None = None,
        updated_at: datetime = NOW,
        completed_at: datetime | None = None,
    ) -> DailyChecklist:
        checklist = DailyChecklist(
            id=uuid4(),
            organization_id=org_id,
            template_id=template.id,
            assignee_id=user_id,
            status=status,
            day=day,
            updated_at=updated_at,
            completed_at=completed_at,
        )
        session.add(checklist)
        await session.commit()
        return checklist

    return _make


@pytest.fixture
def make_alert(session, org_id, user_id):
    async def _make(
        template: ChecklistTemplate,
        created_at: datetime = NOW,
        is_read: bool = False,
    ) -> Notification:
        notification = Notification(
            id=uuid4(),
            organization_id=org_id,
            assignee_id=user_id,
            template_id=template.id,
            type=NotificationType.MISSED_TASK.value,
            message=f'Missed task: "{template.name}"',
            is_read=is_read,
            created_at=created_at,
        )
        session.add(notification)
        await session.commit()
        return notification

    return _make
