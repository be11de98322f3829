# src/murmur_stage/api/v1/endpoints/notifications.py
"""Notification inbox endpoints for the Murmur API."""

from typing import Annotated

from fastapi import APIRouter, Query

from murmur_stage.schemas.common import CountResponse
from murmur_stage.schemas.notification import NotificationPage, NotificationResponse
from murmur_stage.services import notifications as notification_service

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
def list_notifications(
    current_user: CurrentUserDep,
    db: SessionDep,
    cursor: Annotated[str | None, Query()] = None,
    limit: Annotated[int | None, Query()] = None,
) -> NotificationPage:
    """Return the caller's notifications, newest first."""
    page = notification_service.list_notifications(db, current_user, cursor=cursor, limit=limit)
    return NotificationPage(
        message="Notifications retrieved successfully",
        notifications=page.notifications,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.get("/unread-count", response_model=CountResponse)
def unread_count(current_user: CurrentUserDep, db: SessionDep) -> CountResponse:
    return CountResponse(
        message="Unread count retrieved successfully",
        count=notification_service.unread_count(db, current_user),
    )


@router.post("/read-all", response_model=CountResponse)
def mark_all_read(current_user: CurrentUserDep, db: SessionDep) -> CountResponse:
    """Mark every notification as read; ``count`` is how many changed."""
    return CountResponse(
        message="All notifications marked as read",
        count=notification_service.mark_all_read(db, current_user),
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> NotificationResponse:
    """Mark one notification as read; only its recipient may do so."""
    return NotificationResponse(
        message="Notification marked as read",
        notification=notification_service.mark_read(db, notification_id, current_user),
    )
