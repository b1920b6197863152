"""SQLAlchemy ORM Models for the Activity Engine.

These models map the subset of the hosted store's schema that the deadline
resolver and the timeline aggregator read and write. The store owns the
schema; these mappings never drive migrations in production.
"""

from datetime import date, datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.config import get_settings
from .base import Base, TenantMixin, UUIDMixin


# =============================================================================
# ENUMS
# =============================================================================


class ScheduleType(str, PyEnum):
    """Recurring schedules a template can carry in ``schedule_type``."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AssignmentStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class NotificationType(str, PyEnum):
    MISSED_TASK = "missed_task"
    DAILY_DIGEST = "daily_digest"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [e.value for e in enum_cls]


def _default_timezone() -> str:
    return get_settings().default_timezone


# =============================================================================
# ORGANIZATION & PROFILE
# =============================================================================


class Organization(Base, UUIDMixin):
    """Multi-tenant organization."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(64),
        default=_default_timezone,
        nullable=False,
        comment="IANA zone used for end-of-day deadlines",
    )
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    members: Mapped[list["Profile"]] = relationship(back_populates="organization")


class Profile(Base, UUIDMixin, TenantMixin):
    """A staff member belonging to an organization."""

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255))

    organization: Mapped["Organization"] = relationship(back_populates="members")


# =============================================================================
# TEMPLATES & ASSIGNMENTS
# =============================================================================


class ChecklistTemplate(Base, UUIDMixin, TenantMixin):
    """A reusable compliance checklist carrying a scheduling policy."""

    __tablename__ = "checklist_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    schedule_type: Mapped[str | None] = mapped_column(
        String(50),
        comment="daily, weekly or monthly; absolute dates win when set",
    )
    deadline_date: Mapped[date | None] = mapped_column(Date)
    specific_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    assignments: Mapped[list["TemplateAssignment"]] = relationship(
        back_populates="template"
    )


class TemplateAssignment(Base, UUIDMixin, TenantMixin):
    """A template assigned to one staff member."""

    __tablename__ = "template_assignments"

    template_id: Mapped[UUID] = mapped_column(
        ForeignKey("checklist_templates.id"), nullable=False
    )
    assignee_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id"), nullable=False
    )
    assigned_by_id: Mapped[UUID | None] = mapped_column(ForeignKey("profiles.id"))
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus, name="assignment_status", values_callable=_enum_values),
        default=AssignmentStatus.PENDING,
        nullable=False,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column()
    scheduled_date: Mapped[date | None] = mapped_column(
        Date,
        comment="Due date denormalized at assignment time",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    template: Mapped["ChecklistTemplate"] = relationship(back_populates="assignments")
    assignee: Mapped["Profile"] = relationship(foreign_keys=[assignee_id])

    __table_args__ = (
        Index("idx_template_assignments_org_assigned", "organization_id", "assigned_at"),
        Index("idx_template_assignments_assignee", "assignee_id", "status"),
    )


# =============================================================================
# SUBMISSIONS & CHECKLIST INSTANCES
# =============================================================================


class SubmittedReport(Base, UUIDMixin, TenantMixin):
    """A completed report submitted by a staff member."""

    __tablename__ = "submitted_reports"

    submitter_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id"), nullable=False
    )
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    status: Mapped[str] = mapped_column(String(50), default="completed", nullable=False)

    __table_args__ = (
        Index("idx_submitted_reports_org_submitted", "organization_id", "submitted_at"),
    )


class DailyChecklist(Base, UUIDMixin, TenantMixin):
    """One dated instance of a recurring checklist."""

    __tablename__ = "daily_checklists"

    template_id: Mapped[UUID] = mapped_column(
        ForeignKey("checklist_templates.id"), nullable=False
    )
    assignee_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id"), nullable=False
    )
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus, name="checklist_status", values_callable=_enum_values),
        default=AssignmentStatus.PENDING,
        nullable=False,
    )
    day: Mapped[date | None] = mapped_column("date", Date)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column()

    template: Mapped["ChecklistTemplate"] = relationship()

    __table_args__ = (
        Index("idx_daily_checklists_org_updated", "organization_id", "updated_at"),
    )


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class Notification(Base, UUIDMixin, TenantMixin):
    """In-app notification; ``missed_task`` rows are the missed-deadline alerts."""

    __tablename__ = "notifications"

    assignee_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id"), nullable=False
    )
    template_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("checklist_templates.id"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_notifications_assignee_created", "assignee_id", "created_at"),
        # At most one unresolved missed-task alert per (assignee, template)
        Index(
            "uq_notifications_open_missed_task",
            "assignee_id",
            "template_id",
            "type",
            unique=True,
            postgresql_where=text("is_read = false AND type = 'missed_task'"),
            sqlite_where=text("is_read = 0 AND type = 'missed_task'"),
        ),
    )
