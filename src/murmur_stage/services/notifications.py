"""Activity notifications: best-effort writers and the recipient's inbox."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from murmur_stage.core.errors import InternalError, NotFound
from murmur_stage.core.settings import settings
from murmur_stage.db.time import ensure_utc, utcnow
from murmur_stage.models import Notification, NotificationType, User
from murmur_stage.schemas.notification import NotificationView
from murmur_stage.schemas.user import UserSummary
from murmur_stage.services.pagination import (
    clamp_limit,
    decode_cursor,
    encode_cursor,
    keyset_before,
)

logger = logging.getLogger(__name__)

_MESSAGES = {
    NotificationType.FOLLOW: "{actor} started following you",
    NotificationType.MENTION: "{actor} mentioned you in a post",
    NotificationType.LIKE: "{actor} liked your post",
    NotificationType.COMMENT: "{actor} commented on your post",
    NotificationType.RETWEET: "{actor} retweeted your post",
}


@dataclass
class NotificationPageResult:
    notifications: list[NotificationView]
    next_cursor: str | None
    has_more: bool


def notify(
    db: Session,
    *,
    recipient_id: int,
    actor: User,
    kind: NotificationType,
    post_id: int | None = None,
) -> Notification | None:
    """Record a notification in its own transaction.

    Self-directed actions are ignored. Failures are rolled back and logged;
    they never propagate to the caller.
    """
    if recipient_id == actor.id:
        return None

    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor.id,
        type=kind.value,
        post_id=post_id,
        message=_MESSAGES[kind].format(actor=actor.username),
    )
    try:
        db.add(notification)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Could not record %s notification for user %s: %s", kind.value, recipient_id, exc
        )
        return None
    return notification


def notify_mentions(db: Session, *, actor: User, usernames: list[str], post_id: int) -> int:
    """Notify each mentioned, existing user once. Returns how many were written."""
    if not usernames:
        return 0
    lowered = {name.lower() for name in usernames}
    recipients = db.execute(
        select(User).where(func.lower(User.username).in_(lowered))
    ).scalars().all()
    written = 0
    for recipient in recipients:
        if notify(
            db,
            recipient_id=recipient.id,
            actor=actor,
            kind=NotificationType.MENTION,
            post_id=post_id,
        ):
            written += 1
    return written


def format_time_ago(moment: datetime, now: datetime | None = None) -> str:
    """Render ``moment`` as ``Just now``, ``5m``, ``3h`` or ``2d``."""
    now = now or utcnow()
    seconds = int((now - ensure_utc(moment)).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def _view(notification: Notification, actor: User, now: datetime) -> NotificationView:
    return NotificationView(
        id=notification.id,
        type=notification.type,
        message=notification.message,
        post_id=notification.post_id,
        is_read=notification.is_read,
        created_at=ensure_utc(notification.created_at),
        time_ago=format_time_ago(notification.created_at, now),
        actor=UserSummary.model_validate(actor),
    )


def list_notifications(
    db: Session,
    user: User,
    *,
    cursor: str | None = None,
    limit: int | None = None,
) -> NotificationPageResult:
    """Return the user's notifications, newest first."""
    page_size = clamp_limit(
        limit,
        default=settings.notifications_page_size,
        maximum=settings.notifications_page_size,
    )
    stmt = (
        select(Notification, User)
        .join(User, User.id == Notification.actor_id)
        .where(Notification.recipient_id == user.id)
    )
    position = decode_cursor(cursor)
    if position is not None:
        stmt = stmt.where(keyset_before(Notification.created_at, Notification.id, position))
    rows = db.execute(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(page_size + 1)
    ).all()

    has_more = len(rows) > page_size
    rows = rows[:page_size]
    now = utcnow()
    views = [_view(notification, actor, now) for notification, actor in rows]
    next_cursor = None
    if has_more and rows:
        last = rows[-1][0]
        next_cursor = encode_cursor(last.created_at, last.id)
    return NotificationPageResult(views, next_cursor, has_more)


def mark_read(db: Session, notification_id: int, user: User) -> NotificationView:
    """Mark one of the user's notifications as read.

    Raises:
        NotFound: If the notification does not exist or belongs to someone else.
    """
    notification = db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == user.id,
        )
    ).scalars().first()
    if notification is None:
        raise NotFound("Notification not found", code="NOTIFICATION_NOT_FOUND")

    try:
        notification.is_read = True
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to mark notification %s read: %s", notification_id, exc)
        raise InternalError("Could not update notification") from exc

    actor = db.get(User, notification.actor_id)
    return _view(notification, actor, utcnow())


def mark_all_read(db: Session, user: User) -> int:
    """Mark every unread notification of ``user`` as read; returns how many changed."""
    try:
        result = db.execute(
            update(Notification)
            .where(Notification.recipient_id == user.id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to mark notifications read for user %s: %s", user.id, exc)
        raise InternalError("Could not update notifications") from exc
    return result.rowcount or 0


def unread_count(db: Session, user: User) -> int:
    return db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user.id, Notification.is_read.is_(False))
    ).scalar_one()
