"""Feed assembly: posts and retweets merged into one keyset-paginated stream.

A feed item is either a post (event time = the post's ``created_at``) or a
retweet (event time = the retweet's ``created_at``). Items are ordered by
``(event_time DESC, order_index DESC)``; ``order_index`` comes from one
sequence shared by posts and retweets, so the ordering is total and a cursor
naming the last item of a page identifies the boundary exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import (
    Integer,
    Select,
    String,
    Subquery,
    cast,
    literal,
    null,
    or_,
    select,
    union_all,
)
from sqlalchemy.orm import Session

from murmur_stage.core.settings import settings
from murmur_stage.db.time import ensure_utc
from murmur_stage.models import Follow, Post, Retweet, User
from murmur_stage.schemas.post import FeedItem
from murmur_stage.schemas.user import UserSummary
from murmur_stage.services.pagination import (
    clamp_limit,
    decode_cursor,
    encode_cursor,
    keyset_before,
)
from murmur_stage.services.presenters import build_post_views, load_users

logger = logging.getLogger(__name__)

FeedScope = Literal["live", "following"]


@dataclass(frozen=True)
class FeedPageResult:
    items: list[FeedItem]
    next_cursor: str | None
    has_more: bool


def _visible(stmt: Select[Any]) -> Select[Any]:
    return stmt.where(Post.is_public.is_(True), Post.deleted.is_(False))


def _events_subquery(viewer: User | None, scope: FeedScope) -> Subquery:
    post_events = _visible(
        select(
            literal("post", String).label("kind"),
            Post.id.label("post_id"),
            cast(null(), Integer).label("retweet_id"),
            Post.user_id.label("actor_id"),
            Post.created_at.label("event_time"),
            Post.order_index.label("order_index"),
        )
    )
    retweet_events = _visible(
        select(
            literal("retweet", String).label("kind"),
            Retweet.post_id.label("post_id"),
            Retweet.id.label("retweet_id"),
            Retweet.user_id.label("actor_id"),
            Retweet.created_at.label("event_time"),
            Retweet.order_index.label("order_index"),
        ).join(Post, Post.id == Retweet.post_id)
    )

    if scope == "following" and viewer is not None:
        followees = select(Follow.following_id).where(Follow.follower_id == viewer.id)
        post_events = post_events.where(
            or_(Post.user_id == viewer.id, Post.user_id.in_(followees))
        )
        retweet_events = retweet_events.where(
            or_(Retweet.user_id == viewer.id, Retweet.user_id.in_(followees))
        )

    return union_all(post_events, retweet_events).subquery("feed_events")


def assemble_feed(
    db: Session,
    *,
    viewer: User | None = None,
    scope: FeedScope = "live",
    cursor: str | None = None,
    limit: int | None = None,
) -> FeedPageResult:
    """Return one page of the live or following feed.

    Args:
        db: Database session.
        viewer: Requesting user; required for ``scope="following"`` and used
            for the ``liked_by_viewer``/``retweeted_by_viewer`` flags.
        scope: ``"live"`` for everyone, ``"following"`` for the viewer and
            the accounts they follow.
        cursor: Opaque cursor from the previous page, or ``None``.
        limit: Requested page size, clamped to ``[1, FEED_MAX_LIMIT]``.

    Returns:
        The page items, the cursor of the next page (``None`` on the last
        page) and whether more items exist.
    """
    page_size = clamp_limit(limit, maximum=settings.feed_max_limit)
    events = _events_subquery(viewer, scope)

    stmt = select(events)
    position = decode_cursor(cursor)
    if position is not None:
        stmt = stmt.where(keyset_before(events.c.event_time, events.c.order_index, position))
    rows = db.execute(
        stmt.order_by(events.c.event_time.desc(), events.c.order_index.desc()).limit(
            page_size + 1
        )
    ).all()

    has_more = len(rows) > page_size
    rows = rows[:page_size]
    if not rows:
        return FeedPageResult(items=[], next_cursor=None, has_more=False)

    post_ids = {row.post_id for row in rows}
    posts = {
        post.id: post
        for post in db.execute(select(Post).where(Post.id.in_(post_ids))).scalars()
    }
    users = load_users(db, {row.actor_id for row in rows} | {p.user_id for p in posts.values()})
    views = {
        view.id: view
        for view in build_post_views(db, list(posts.values()), viewer, authors=users)
    }

    items: list[FeedItem] = []
    retweet_comments: dict[int, str | None] = {}
    retweet_ids = [row.retweet_id for row in rows if row.retweet_id is not None]
    if retweet_ids:
        retweet_comments = dict(
            db.execute(
                select(Retweet.id, Retweet.comment).where(Retweet.id.in_(retweet_ids))
            ).tuples().all()
        )

    for row in rows:
        is_retweet = row.kind == "retweet"
        items.append(
            FeedItem(
                kind="retweet" if is_retweet else "post",
                event_time=ensure_utc(row.event_time),
                order_index=row.order_index,
                post=views[row.post_id],
                retweeted_by=UserSummary.model_validate(users[row.actor_id]) if is_retweet else None,
                retweet_comment=retweet_comments.get(row.retweet_id) if is_retweet else None,
            )
        )

    last = rows[-1]
    next_cursor = encode_cursor(last.event_time, last.order_index) if has_more else None
    logger.debug("Assembled %s feed page of %d items (has_more=%s)", scope, len(items), has_more)
    return FeedPageResult(items=items, next_cursor=next_cursor, has_more=has_more)
