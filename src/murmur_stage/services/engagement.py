"""Likes, retweets and comments with counters kept consistent.

Every mutation runs as one transaction against a locked post row: the join
row is inserted or deleted, flushed, and the cached counter on the post is
then rebuilt with ``COUNT(*)`` over the join table. The stored counter is a
cache; the join rows are the truth, so concurrent requests can never leave
it drifted.

Concurrent duplicate creates lose on the ``(user_id, post_id)`` unique
constraint. The losing request rolls back, recounts, and reports the
engagement as active, which is the state the winning request produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from murmur_stage.core.errors import InternalError, NotFound, ValidationFailed
from murmur_stage.core.settings import settings
from murmur_stage.db.time import ensure_utc
from murmur_stage.models import Comment, Like, NotificationType, Post, Retweet, User
from murmur_stage.repositories.post_repo import PostRepository, next_order_index
from murmur_stage.schemas.post import CommentView
from murmur_stage.schemas.user import UserSummary
from murmur_stage.services.notifications import notify
from murmur_stage.services.pagination import (
    clamp_limit,
    decode_cursor,
    encode_cursor,
    keyset_before,
)
from murmur_stage.services.presenters import load_users
from murmur_stage.services.realtime import (
    COMMENT_ADDED,
    LIKE_UPDATED,
    RETWEET_UPDATED,
    EventPublisher,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleResult:
    """State of a like or retweet after a toggle."""

    active: bool
    count: int


@dataclass(frozen=True)
class CommentResult:
    comment: CommentView
    comment_count: int


@dataclass(frozen=True)
class CommentPageResult:
    comments: list[CommentView]
    next_cursor: str | None
    has_more: bool


def _not_found() -> NotFound:
    return NotFound("Post not found", code="POST_NOT_FOUND")


def _lock_post(db: Session, post_id: int) -> Post:
    post = PostRepository(db).lock_visible(post_id)
    if post is None:
        raise _not_found()
    return post


def _count(db: Session, model: Any, post_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(model).where(model.post_id == post_id)
    ).scalar_one()


def _existing_row(db: Session, model: Any, user_id: int, post_id: int) -> Any:
    return db.execute(
        select(model).where(model.user_id == user_id, model.post_id == post_id)
    ).scalars().first()


def _apply_counts(db: Session, post: Post) -> None:
    post.like_count = _count(db, Like, post.id)
    post.retweet_count = _count(db, Retweet, post.id)
    post.comment_count = _count(db, Comment, post.id)


def recount_post_counters(db: Session, post_id: int) -> Post:
    """Rebuild all three counters of a post from its join rows and commit.

    Raises:
        NotFound: If the post is missing or deleted.
        InternalError: If the datastore fails.
    """
    try:
        post = _lock_post(db, post_id)
        _apply_counts(db, post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Recount of post %s failed: %s", post_id, exc)
        raise InternalError("Could not update counters") from exc
    return post


def _settle_duplicate(db: Session, post_id: int, user: User, what: str) -> Post:
    logger.info(
        "Concurrent duplicate %s on post %s by user %s; keeping existing row",
        what,
        post_id,
        user.id,
    )
    return recount_post_counters(db, post_id)


def toggle_like(
    db: Session,
    post_id: int,
    user: User,
    *,
    events: EventPublisher | None = None,
) -> ToggleResult:
    """Like the post if the user has not, otherwise remove the like.

    Raises:
        NotFound: If the post is missing or deleted.
        InternalError: If the datastore fails; nothing is written.
    """
    post = _lock_post(db, post_id)
    try:
        existing = _existing_row(db, Like, user.id, post.id)
        if existing is None:
            db.add(Like(user_id=user.id, post_id=post.id))
            active = True
        else:
            db.delete(existing)
            active = False
        db.flush()
        post.like_count = _count(db, Like, post.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        post = _settle_duplicate(db, post_id, user, "like")
        return ToggleResult(active=True, count=post.like_count)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Like toggle on post %s failed: %s", post_id, exc)
        raise InternalError("Could not update like") from exc

    if active:
        notify(
            db,
            recipient_id=post.user_id,
            actor=user,
            kind=NotificationType.LIKE,
            post_id=post.id,
        )
    if events is not None:
        events.publish(
            LIKE_UPDATED,
            {"postId": post.id, "likeCount": post.like_count, "userId": user.id, "liked": active},
        )
    return ToggleResult(active=active, count=post.like_count)


def toggle_retweet(
    db: Session,
    post_id: int,
    user: User,
    comment: str | None = None,
    *,
    events: EventPublisher | None = None,
) -> ToggleResult:
    """Retweet the post if the user has not, otherwise undo the retweet.

    A new retweet takes its own ``order_index`` so it appears in feeds at the
    time it was made.

    Raises:
        ValidationFailed: If the quote comment is too long.
        NotFound: If the post is missing or deleted.
        InternalError: If the datastore fails; nothing is written.
    """
    if comment is not None:
        comment = comment.strip() or None
    if comment is not None and len(comment) > settings.retweet_comment_max_length:
        raise ValidationFailed(
            f"Retweet comment must be at most {settings.retweet_comment_max_length} characters",
            code="COMMENT_TOO_LONG",
        )

    post = _lock_post(db, post_id)
    try:
        existing = _existing_row(db, Retweet, user.id, post.id)
        if existing is None:
            db.add(
                Retweet(
                    order_index=next_order_index(db),
                    user_id=user.id,
                    post_id=post.id,
                    comment=comment,
                )
            )
            active = True
        else:
            db.delete(existing)
            active = False
        db.flush()
        post.retweet_count = _count(db, Retweet, post.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        post = _settle_duplicate(db, post_id, user, "retweet")
        return ToggleResult(active=True, count=post.retweet_count)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Retweet toggle on post %s failed: %s", post_id, exc)
        raise InternalError("Could not update retweet") from exc

    if active:
        notify(
            db,
            recipient_id=post.user_id,
            actor=user,
            kind=NotificationType.RETWEET,
            post_id=post.id,
        )
    if events is not None:
        events.publish(
            RETWEET_UPDATED,
            {
                "postId": post.id,
                "retweetCount": post.retweet_count,
                "userId": user.id,
                "retweeted": active,
            },
        )
    return ToggleResult(active=active, count=post.retweet_count)


def _comment_view(comment: Comment, author: User) -> CommentView:
    return CommentView(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        created_at=ensure_utc(comment.created_at),
        author=UserSummary.model_validate(author),
    )


def add_comment(
    db: Session,
    post_id: int,
    user: User,
    content: str,
    *,
    events: EventPublisher | None = None,
) -> CommentResult:
    """Append a comment and rebuild the post's comment counter.

    Raises:
        ValidationFailed: If the content is blank or too long.
        NotFound: If the post is missing or deleted.
        InternalError: If the datastore fails; nothing is written.
    """
    text = (content or "").strip()
    if not text:
        raise ValidationFailed("Comment content is required", code="EMPTY_COMMENT")
    if len(text) > settings.comment_max_length:
        raise ValidationFailed(
            f"Comment must be at most {settings.comment_max_length} characters",
            code="COMMENT_TOO_LONG",
        )

    post = _lock_post(db, post_id)
    try:
        comment = Comment(post_id=post.id, user_id=user.id, content=text)
        db.add(comment)
        db.flush()
        post.comment_count = _count(db, Comment, post.id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Comment on post %s failed: %s", post_id, exc)
        raise InternalError("Could not add comment") from exc

    view = _comment_view(comment, user)
    notify(
        db,
        recipient_id=post.user_id,
        actor=user,
        kind=NotificationType.COMMENT,
        post_id=post.id,
    )
    if events is not None:
        events.publish(
            COMMENT_ADDED,
            {
                "postId": post.id,
                "commentCount": post.comment_count,
                "comment": view.model_dump(),
            },
        )
    return CommentResult(comment=view, comment_count=post.comment_count)


def list_comments(
    db: Session,
    post_id: int,
    *,
    cursor: str | None = None,
    limit: int | None = None,
) -> CommentPageResult:
    """Return a post's comments, newest first.

    Raises:
        NotFound: If the post is missing or deleted.
    """
    if PostRepository(db).get_visible(post_id) is None:
        raise _not_found()

    page_size = clamp_limit(limit)
    stmt = select(Comment).where(Comment.post_id == post_id)
    position = decode_cursor(cursor)
    if position is not None:
        stmt = stmt.where(keyset_before(Comment.created_at, Comment.id, position))
    rows = list(
        db.execute(
            stmt.order_by(Comment.created_at.desc(), Comment.id.desc()).limit(page_size + 1)
        ).scalars()
    )

    has_more = len(rows) > page_size
    rows = rows[:page_size]
    authors = load_users(db, {row.user_id for row in rows})
    comments = [_comment_view(row, authors[row.user_id]) for row in rows]
    next_cursor = encode_cursor(rows[-1].created_at, rows[-1].id) if has_more and rows else None
    return CommentPageResult(comments, next_cursor, has_more)
