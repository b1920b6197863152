"""Read/resolve operations on in-app notifications.

Marking a ``missed_task`` alert as read resolves it: the next sweep may
raise a fresh alert for the same assignee and template if the work is
still outstanding.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Notification
from .errors import NotificationNotFoundError, NotificationPermissionError

logger = logging.getLogger(__name__)


@dataclass
class MarkReadResult:
    notification_id: UUID
    already_read: bool


class NotificationService:
    """Marks a staff member's notifications as read."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def mark_read(
        self,
        notification_id: UUID,
        user_id: UUID,
        now: datetime,
    ) -> MarkReadResult:
        """
        Mark one notification as read.

        Raises:
            NotificationNotFoundError: no notification with that id
            NotificationPermissionError: the notification belongs to someone else
        """
        async with self._session_factory() as session:
            async with session.begin():
                notification = await session.get(Notification, notification_id)

                if notification is None:
                    raise NotificationNotFoundError(f"Notification {notification_id} not found")

                if notification.assignee_id != user_id:
                    logger.warning(
                        f"User {user_id} tried to modify notification {notification_id} "
                        f"owned by {notification.assignee_id}"
                    )
                    raise NotificationPermissionError(
                        "No permission to modify this notification"
                    )

                if notification.is_read:
                    return MarkReadResult(notification_id=notification_id, already_read=True)

                notification.is_read = True
                notification.updated_at = now.astimezone(timezone.utc)

        logger.info(f"Notification {notification_id} marked as read by {user_id}")
        return MarkReadResult(notification_id=notification_id, already_read=False)

    async def mark_all_read(
        self,
        user_id: UUID,
        notification_ids: Sequence[UUID],
        now: datetime,
    ) -> int:
        """Mark the user's own unread notifications among ``notification_ids`` as read."""
        if not notification_ids:
            return 0

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Notification)
                    .where(
                        Notification.id.in_(list(notification_ids)),
                        Notification.assignee_id == user_id,
                        Notification.is_read.is_(False),
                    )
                    .values(is_read=True, updated_at=now.astimezone(timezone.utc))
                )
                cleared = result.rowcount

        logger.info(f"Cleared {cleared} notifications for user {user_id}")
        return cleared

    async def list_unread(self, user_id: UUID, limit: int = 10) -> list[Notification]:
        """Most recent unread notifications for a user."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Notification)
                .where(
                    Notification.assignee_id == user_id,
                    Notification.is_read.is_(False),
                )
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
