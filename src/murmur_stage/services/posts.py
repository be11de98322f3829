"""Post lifecycle, search, trending hashtags and author analytics."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from murmur_stage.core.errors import InternalError, NotFound, PermissionDenied, ValidationFailed
from murmur_stage.core.settings import settings
from murmur_stage.db.patterns import LIKE_ESCAPE, contains_pattern
from murmur_stage.db.time import utcnow
from murmur_stage.models import Follow, Like, Post, PostHashtag, Retweet, User
from murmur_stage.repositories.post_repo import PostRepository
from murmur_stage.schemas.poll import PollCreate
from murmur_stage.schemas.post import PostAnalytics, PostView, TrendingHashtag
from murmur_stage.services.notifications import notify_mentions
from murmur_stage.services.polls import create_poll
from murmur_stage.services.presenters import build_post_view, build_post_views
from murmur_stage.services.realtime import NEW_FEED, POST_DELETED, EventPublisher
from murmur_stage.services.storage import BlobStore, folder_for

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#(\w+)")
MENTION_PATTERN = re.compile(r"@(\w+)")
CONTENT_TYPES = ("text", "image", "video", "mixed")


@dataclass(frozen=True)
class MediaUpload:
    """Raw uploaded file handed over by the HTTP layer."""

    data: bytes
    filename: str
    content_type: str


def _unique(values: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


def extract_hashtags(content: str | None) -> list[str]:
    """Return distinct lower-cased ``#tags`` in order of appearance."""
    return _unique([tag.lower() for tag in HASHTAG_PATTERN.findall(content or "")])


def extract_mentions(content: str | None) -> list[str]:
    """Return distinct ``@usernames`` in order of appearance."""
    return _unique(MENTION_PATTERN.findall(content or ""))


def _content_type_for(media: list[MediaUpload]) -> str:
    kinds = {upload.content_type.lower().split("/", 1)[0] for upload in media}
    if not kinds:
        return "text"
    if len(kinds) == 1:
        return kinds.pop()
    return "mixed"


def _not_found() -> NotFound:
    return NotFound("Post not found", code="POST_NOT_FOUND")


def create_post(
    db: Session,
    author: User,
    *,
    content: str | None = None,
    location: str | None = None,
    poll: PollCreate | None = None,
    media: list[MediaUpload] | None = None,
    blob_store: BlobStore | None = None,
    events: EventPublisher | None = None,
) -> PostView:
    """Create a post, optionally with media and a poll.

    Media is validated and uploaded before the database transaction opens;
    the post, its hashtags and its poll are then written in one transaction.

    Raises:
        ValidationFailed: If there is neither content nor media, a limit is
            exceeded, or the media type is unsupported.
        InternalError: If the upload or the datastore fails.
    """
    text = (content or "").strip() or None
    media = media or []
    if text is None and not media:
        raise ValidationFailed("Post content or media is required", code="EMPTY_POST")
    if text is not None and len(text) > settings.post_max_length:
        raise ValidationFailed(
            f"Post content must be at most {settings.post_max_length} characters",
            code="CONTENT_TOO_LONG",
        )
    location = (location or "").strip() or None
    if location is not None and len(location) > settings.location_max_length:
        raise ValidationFailed(
            f"Location must be at most {settings.location_max_length} characters",
            code="LOCATION_TOO_LONG",
        )
    for upload in media:
        folder_for(upload.content_type)
        if len(upload.data) > settings.media_max_bytes:
            raise ValidationFailed("Media file is too large", code="MEDIA_TOO_LARGE")

    media_urls: list[str] = []
    if media:
        if blob_store is None:
            raise InternalError("Media storage is not configured", code="STORAGE_UNAVAILABLE")
        media_urls = [
            blob_store.upload(upload.data, upload.filename, upload.content_type)
            for upload in media
        ]

    mentions = extract_mentions(text)
    try:
        post = PostRepository(db).create(
            user_id=author.id,
            content=text,
            content_type=_content_type_for(media),
            media_urls=media_urls,
            mentions=mentions,
            hashtags=extract_hashtags(text),
            location=location,
        )
        if poll is not None:
            create_poll(db, post, poll)
        db.commit()
    except ValidationFailed:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Creating post for user %s failed: %s", author.id, exc)
        raise InternalError("Could not create post") from exc

    logger.info("User %s created post %s", author.id, post.id)
    notify_mentions(db, actor=author, usernames=mentions, post_id=post.id)
    view = build_post_view(db, post, author)
    if events is not None:
        events.publish(NEW_FEED, {"post": view.model_dump()})
    return view


def get_post(db: Session, post_id: int, viewer: User | None = None) -> PostView:
    """Return a live post.

    Raises:
        NotFound: If the post is missing or soft-deleted.
    """
    post = PostRepository(db).get_visible(post_id)
    if post is None:
        raise _not_found()
    return build_post_view(db, post, viewer)


def delete_post(
    db: Session,
    post_id: int,
    user: User,
    *,
    events: EventPublisher | None = None,
) -> None:
    """Soft-delete a post. Content and media URLs stay in place for audit.

    Raises:
        NotFound: If the post is missing or already deleted.
        PermissionDenied: If ``user`` is not the author.
    """
    repo = PostRepository(db)
    post = repo.lock_visible(post_id)
    if post is None:
        raise _not_found()
    if post.user_id != user.id:
        raise PermissionDenied("You can only delete your own posts", code="NOT_POST_OWNER")

    try:
        post.deleted = True
        post.deleted_at = utcnow()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Deleting post %s failed: %s", post_id, exc)
        raise InternalError("Could not delete post") from exc

    logger.info("User %s deleted post %s", user.id, post_id)
    if events is not None:
        events.publish(POST_DELETED, {"postId": post_id})


def search_posts(
    db: Session,
    q: str | None = None,
    *,
    content_type: str | None = None,
    from_date: datetime | None = None,
    limit: int | None = None,
    viewer: User | None = None,
) -> list[PostView]:
    """Search public posts, most engaged first.

    ``q`` matches a content substring, an exact hashtag (with or without the
    leading ``#``) or an author username substring, all case-insensitive.
    """
    page_size = max(1, min(limit or 50, settings.search_max_limit))
    stmt = (
        select(Post)
        .join(User, User.id == Post.user_id)
        .where(Post.is_public.is_(True), Post.deleted.is_(False))
    )
    term = (q or "").strip()
    if term:
        pattern = contains_pattern(term.lower())
        tag = term.lstrip("#").lower()
        tagged = select(PostHashtag.post_id).where(PostHashtag.tag == tag)
        stmt = stmt.where(
            or_(
                func.lower(Post.content).like(pattern, escape=LIKE_ESCAPE),
                Post.id.in_(tagged),
                func.lower(User.username).like(pattern, escape=LIKE_ESCAPE),
            )
        )
    if content_type:
        if content_type not in CONTENT_TYPES:
            raise ValidationFailed("Unknown content type", code="INVALID_CONTENT_TYPE")
        stmt = stmt.where(Post.content_type == content_type)
    if from_date is not None:
        stmt = stmt.where(Post.created_at >= from_date)

    engagement = Post.like_count + Post.retweet_count + Post.comment_count
    posts = list(
        db.execute(
            stmt.order_by(engagement.desc(), Post.created_at.desc(), Post.order_index.desc())
            .limit(page_size)
        ).scalars()
    )
    return build_post_views(db, posts, viewer)


def trending_hashtags(
    db: Session,
    *,
    limit: int = 10,
    hours: int = 24,
) -> list[TrendingHashtag]:
    """Return the most used hashtags of visible posts within ``hours``."""
    limit = max(1, min(limit, settings.trending_max_limit))
    hours = max(1, min(hours, settings.trending_max_hours))
    since = utcnow() - timedelta(hours=hours)

    usage = func.count(PostHashtag.post_id).label("usage_count")
    users = func.count(distinct(Post.user_id)).label("unique_users")
    rows = db.execute(
        select(PostHashtag.tag, usage, users)
        .join(Post, Post.id == PostHashtag.post_id)
        .where(
            Post.created_at >= since,
            Post.is_public.is_(True),
            Post.deleted.is_(False),
        )
        .group_by(PostHashtag.tag)
        .order_by(usage.desc(), users.desc(), PostHashtag.tag)
        .limit(limit)
    ).all()
    return [TrendingHashtag(tag=tag, count=count, unique_users=unique) for tag, count, unique in rows]


def post_analytics(db: Session, post_id: int, user: User) -> PostAnalytics:
    """Return engagement figures for the author of ``post_id``.

    Raises:
        NotFound: If the post is missing or deleted.
        PermissionDenied: If ``user`` is not the author.
    """
    post = PostRepository(db).get_visible(post_id)
    if post is None:
        raise _not_found()
    if post.user_id != user.id:
        raise PermissionDenied("Only the author can view post analytics", code="NOT_POST_OWNER")

    day_ago = utcnow() - timedelta(hours=24)

    def _distinct_users(model: type[Like] | type[Retweet], since: datetime | None = None) -> int:
        stmt = select(func.count(distinct(model.user_id))).where(model.post_id == post.id)
        if since is not None:
            stmt = stmt.where(model.created_at >= since)
        return db.execute(stmt).scalar_one()

    followers = db.execute(
        select(func.count()).select_from(Follow).where(Follow.following_id == post.user_id)
    ).scalar_one()
    total = post.like_count + post.retweet_count + post.comment_count
    return PostAnalytics(
        post_id=post.id,
        like_count=post.like_count,
        retweet_count=post.retweet_count,
        comment_count=post.comment_count,
        total_engagement=total,
        unique_likers=_distinct_users(Like),
        unique_retweeters=_distinct_users(Retweet),
        likes_last_24h=_distinct_users(Like, day_ago),
        retweets_last_24h=_distinct_users(Retweet, day_ago),
        follower_count=followers,
        engagement_rate=round(total * 100.0 / max(followers, 1), 2),
    )
