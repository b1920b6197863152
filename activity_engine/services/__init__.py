"""Business logic services for the Activity Engine."""

from .deadline_resolver import (
    AlertBatch,
    DeadlineResolver,
    MissedItem,
    PolicyKind,
    SchedulePolicy,
    SweepResult,
    detect_missed,
    resolve_due_instant,
)
from .errors import (
    AlertWriteError,
    EngineError,
    NotificationNotFoundError,
    NotificationPermissionError,
    OrganizationNotFoundError,
    SourceFetchError,
)
from .notifications import NotificationService
from .pagination import Page, paginate, query_window
from .reminders import ReminderConfig, ReminderService
from .timeline import (
    Activity,
    ActivityKind,
    TimelineAggregator,
    TimelineConfig,
    TimelinePage,
)

__all__ = [
    # Deadline Resolver
    "DeadlineResolver",
    "SchedulePolicy",
    "PolicyKind",
    "MissedItem",
    "AlertBatch",
    "SweepResult",
    "resolve_due_instant",
    "detect_missed",
    # Timeline Aggregator
    "TimelineAggregator",
    "TimelineConfig",
    "TimelinePage",
    "Activity",
    "ActivityKind",
    # Pagination
    "Page",
    "paginate",
    "query_window",
    # Reminders & notifications
    "ReminderService",
    "ReminderConfig",
    "NotificationService",
    # Errors
    "EngineError",
    "SourceFetchError",
    "AlertWriteError",
    "OrganizationNotFoundError",
    "NotificationNotFoundError",
    "NotificationPermissionError",
]
