"""Notification API: mark alerts and digests as read."""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from ..core import SessionFactoryDep, UserIdDep
from ..schemas import MarkAllReadRequest, MarkAllReadResponse, MarkReadResponse
from ..services.errors import NotificationNotFoundError, NotificationPermissionError
from ..services.notifications import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(session_factory: SessionFactoryDep) -> NotificationService:
    return NotificationService(session_factory)


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


@router.post(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark a notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    user_id: UserIdDep,
    service: NotificationServiceDep,
):
    try:
        result = await service.mark_read(notification_id, user_id, datetime.now(timezone.utc))
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NotificationPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    return MarkReadResponse(
        notification_id=result.notification_id,
        already_read=result.already_read,
        message="Already marked as read" if result.already_read else "Marked as read",
    )


@router.post(
    "/read",
    response_model=MarkAllReadResponse,
    summary="Mark several notifications as read",
)
async def mark_notifications_read(
    request: MarkAllReadRequest,
    user_id: UserIdDep,
    service: NotificationServiceDep,
):
    cleared = await service.mark_all_read(
        user_id,
        request.notification_ids,
        datetime.now(timezone.utc),
    )
    return MarkAllReadResponse(cleared=cleared)
