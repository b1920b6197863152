"""Exceptions raised by the activity engine services."""

from uuid import UUID


class EngineError(Exception):
    """Base exception for engine operations."""
    pass


class SourceFetchError(EngineError):
    """A timeline source query failed or timed out.

    The whole aggregation fails with this error; callers retry or fall back
    to a cached view rather than show a partial timeline.
    """

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Failed to fetch {source}: {message}")


class AlertWriteError(EngineError):
    """The check-or-insert for one missed-task alert failed."""

    def __init__(self, assignment_id: UUID, message: str):
        self.assignment_id = assignment_id
        super().__init__(f"Failed to write alert for assignment {assignment_id}: {message}")


class OrganizationNotFoundError(EngineError):
    """Organization does not exist."""
    pass


class NotificationNotFoundError(EngineError):
    """Notification does not exist."""
    pass


class NotificationPermissionError(EngineError):
    """Notification belongs to another user."""
    pass
