"""Notification schemas."""

from datetime import datetime

from pydantic import BaseModel

from .common import Envelope
from .user import UserSummary


class NotificationView(BaseModel):
    id: int
    type: str
    message: str
    post_id: int | None = None
    is_read: bool
    created_at: datetime
    time_ago: str
    actor: UserSummary


class NotificationPage(Envelope):
    notifications: list[NotificationView]
    next_cursor: str | None = None
    has_more: bool = False


class NotificationResponse(Envelope):
    notification: NotificationView
