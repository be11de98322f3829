"""Accounts, profiles and the follow graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from murmur_stage.core.errors import Conflict, InternalError, NotFound, ValidationFailed
from murmur_stage.db.patterns import LIKE_ESCAPE, contains_pattern
from murmur_stage.db.time import ensure_utc
from murmur_stage.models import Follow, NotificationType, User
from murmur_stage.repositories.post_repo import PostRepository
from murmur_stage.schemas.user import AccountProfile, ProfileUpdate, UserProfile, UserSummary
from murmur_stage.services.notifications import notify
from murmur_stage.services.pagination import (
    clamp_limit,
    decode_cursor,
    decode_id_cursor,
    encode_cursor,
    keyset_before,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserPageResult:
    users: list[UserSummary]
    next_cursor: str | None
    has_more: bool


def _user_not_found() -> NotFound:
    return NotFound("User not found", code="USER_NOT_FOUND")


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise _user_not_found()
    return user


def follow_counts(db: Session, user_id: int) -> tuple[int, int]:
    """Return ``(followers, following)`` for ``user_id``."""
    followers = db.execute(
        select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
    ).scalar_one()
    following = db.execute(
        select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
    ).scalar_one()
    return followers, following


def is_following(db: Session, follower_id: int, following_id: int) -> bool:
    return (
        db.execute(
            select(Follow.id).where(
                Follow.follower_id == follower_id, Follow.following_id == following_id
            )
        ).first()
        is not None
    )


def profile_for(db: Session, user: User, viewer: User | None = None) -> UserProfile:
    """Return the public profile of ``user`` as seen by ``viewer``."""
    followers, following = follow_counts(db, user.id)
    return UserProfile(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        profile_picture=user.profile_picture,
        is_verified=user.is_verified,
        bio=user.bio,
        location=user.location,
        website=user.website,
        created_at=ensure_utc(user.created_at),
        followers_count=followers,
        following_count=following,
        posts_count=PostRepository(db).count_by_author(user.id),
        is_following=(
            is_following(db, viewer.id, user.id)
            if viewer is not None and viewer.id != user.id
            else None
        ),
    )


def account_for(db: Session, user: User) -> AccountProfile:
    """Return the authenticated user's own profile, private fields included."""
    profile = profile_for(db, user)
    return AccountProfile(
        **profile.model_dump(),
        email=user.email,
        last_active_at=ensure_utc(user.last_active_at) if user.last_active_at else None,
    )


def update_profile(db: Session, user: User, changes: ProfileUpdate) -> User:
    """Apply the provided profile fields."""
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(user, field, value.strip() if isinstance(value, str) else value)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Profile update for user %s failed: %s", user.id, exc)
        raise InternalError("Could not update profile") from exc
    return user


def follow_user(db: Session, follower: User, target_id: int) -> int:
    """Make ``follower`` follow ``target_id``; returns the target's follower count.

    Raises:
        ValidationFailed: On a self-follow.
        NotFound: If the target does not exist.
        Conflict: With code ``ALREADY_FOLLOWING`` (400) if the edge exists.
    """
    if follower.id == target_id:
        raise ValidationFailed("You cannot follow yourself", code="SELF_FOLLOW")
    target = get_user(db, target_id)
    if is_following(db, follower.id, target.id):
        raise Conflict(
            "You are already following this user",
            code="ALREADY_FOLLOWING",
            status_code=400,
        )

    try:
        db.add(Follow(follower_id=follower.id, following_id=target.id))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(
            "You are already following this user",
            code="ALREADY_FOLLOWING",
            status_code=400,
        ) from None
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Follow %s -> %s failed: %s", follower.id, target.id, exc)
        raise InternalError("Could not follow user") from exc

    notify(db, recipient_id=target.id, actor=follower, kind=NotificationType.FOLLOW)
    return follow_counts(db, target.id)[0]


def unfollow_user(db: Session, follower: User, target_id: int) -> int:
    """Remove the follow edge if present; returns the target's follower count.

    Unfollowing someone not followed is a successful no-op.

    Raises:
        NotFound: If the target does not exist.
    """
    target = get_user(db, target_id)
    edge = db.execute(
        select(Follow).where(Follow.follower_id == follower.id, Follow.following_id == target.id)
    ).scalars().first()
    if edge is not None:
        try:
            db.delete(edge)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Unfollow %s -> %s failed: %s", follower.id, target.id, exc)
            raise InternalError("Could not unfollow user") from exc
    return follow_counts(db, target.id)[0]


def _follow_page(
    db: Session,
    user_id: int,
    *,
    followers: bool,
    cursor: str | None,
    limit: int | None,
) -> UserPageResult:
    get_user(db, user_id)
    page_size = clamp_limit(limit)
    if followers:
        stmt = select(Follow, User).join(User, User.id == Follow.follower_id).where(
            Follow.following_id == user_id
        )
    else:
        stmt = select(Follow, User).join(User, User.id == Follow.following_id).where(
            Follow.follower_id == user_id
        )
    position = decode_cursor(cursor)
    if position is not None:
        stmt = stmt.where(keyset_before(Follow.created_at, Follow.id, position))
    rows = db.execute(
        stmt.order_by(Follow.created_at.desc(), Follow.id.desc()).limit(page_size + 1)
    ).all()

    has_more = len(rows) > page_size
    rows = rows[:page_size]
    next_cursor = None
    if has_more and rows:
        last = rows[-1][0]
        next_cursor = encode_cursor(last.created_at, last.id)
    return UserPageResult(
        [UserSummary.model_validate(user) for _, user in rows], next_cursor, has_more
    )


def list_followers(
    db: Session, user_id: int, *, cursor: str | None = None, limit: int | None = None
) -> UserPageResult:
    return _follow_page(db, user_id, followers=True, cursor=cursor, limit=limit)


def list_following(
    db: Session, user_id: int, *, cursor: str | None = None, limit: int | None = None
) -> UserPageResult:
    return _follow_page(db, user_id, followers=False, cursor=cursor, limit=limit)


def suggestions(db: Session, viewer: User, *, limit: int = 10) -> list[UserSummary]:
    """Return users ``viewer`` does not follow yet, newest accounts first."""
    followed = select(Follow.following_id).where(Follow.follower_id == viewer.id)
    users = db.execute(
        select(User)
        .where(User.id != viewer.id, User.id.not_in(followed))
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(max(1, min(limit, 50)))
    ).scalars()
    return [UserSummary.model_validate(user) for user in users]


def search_users(db: Session, q: str, *, limit: int = 20) -> list[UserSummary]:
    """Case-insensitive substring match on username or display name."""
    term = q.strip().lower()
    if not term:
        return []
    pattern = contains_pattern(term)
    users = db.execute(
        select(User)
        .where(
            or_(
                func.lower(User.username).like(pattern, escape=LIKE_ESCAPE),
                func.lower(User.display_name).like(pattern, escape=LIKE_ESCAPE),
            )
        )
        .order_by(User.username)
        .limit(max(1, min(limit, 100)))
    ).scalars()
    return [UserSummary.model_validate(user) for user in users]


def browse_users(
    db: Session, *, cursor: str | None = None, limit: int | None = None
) -> UserPageResult:
    """Return users in ascending id order, ``cursor`` being the last id seen."""
    page_size = clamp_limit(limit)
    stmt = select(User)
    after = decode_id_cursor(cursor)
    if after is not None:
        stmt = stmt.where(User.id > after)
    rows = list(db.execute(stmt.order_by(User.id).limit(page_size + 1)).scalars())
    has_more = len(rows) > page_size
    rows = rows[:page_size]
    next_cursor = str(rows[-1].id) if has_more and rows else None
    return UserPageResult([UserSummary.model_validate(u) for u in rows], next_cursor, has_more)
