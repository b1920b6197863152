"""SQLAlchemy ORM Models for the Activity Engine."""

from .base import Base, TenantMixin, UUIDMixin
from .models import (
    # Enums
    AssignmentStatus,
    NotificationType,
    ScheduleType,
    # Organization & Profile
    Organization,
    Profile,
    # Templates & Assignments
    ChecklistTemplate,
    TemplateAssignment,
    # Activity sources
    DailyChecklist,
    SubmittedReport,
    # Notifications
    Notification,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TenantMixin",
    # Enums
    "AssignmentStatus",
    "NotificationType",
    "ScheduleType",
    # Organization & Profile
    "Organization",
    "Profile",
    # Templates & Assignments
    "ChecklistTemplate",
    "TemplateAssignment",
    # Activity sources
    "DailyChecklist",
    "SubmittedReport",
    # Notifications
    "Notification",
]
