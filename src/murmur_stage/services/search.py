"""Combined user and post search behind ``GET /search``."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from murmur_stage.models import Post, User
from murmur_stage.schemas.post import PostView
from murmur_stage.schemas.user import UserSummary
from murmur_stage.services.pagination import (
    clamp_limit,
    decode_cursor,
    encode_cursor,
    keyset_before,
)
from murmur_stage.services.posts import search_posts
from murmur_stage.services.presenters import build_post_views
from murmur_stage.services.users import browse_users, search_users


@dataclass(frozen=True)
class SearchResult:
    users: list[UserSummary]
    posts: list[PostView]
    next_user_cursor: str | None = None
    next_post_cursor: str | None = None


def browse_posts(
    db: Session,
    *,
    cursor: str | None = None,
    limit: int | None = None,
    viewer: User | None = None,
) -> tuple[list[PostView], str | None]:
    """Return public posts newest first with the next ``time|order_index`` cursor."""
    page_size = clamp_limit(limit)
    stmt = select(Post).where(Post.is_public.is_(True), Post.deleted.is_(False))
    position = decode_cursor(cursor)
    if position is not None:
        stmt = stmt.where(keyset_before(Post.created_at, Post.order_index, position))
    rows = list(
        db.execute(
            stmt.order_by(Post.created_at.desc(), Post.order_index.desc()).limit(page_size + 1)
        ).scalars()
    )
    has_more = len(rows) > page_size
    rows = rows[:page_size]
    next_cursor = encode_cursor(rows[-1].created_at, rows[-1].order_index) if has_more else None
    return build_post_views(db, rows, viewer), next_cursor


def search(
    db: Session,
    q: str | None = None,
    *,
    limit: int | None = None,
    user_cursor: str | None = None,
    post_cursor: str | None = None,
    viewer: User | None = None,
) -> SearchResult:
    """Search users and posts for ``q``, or browse both when ``q`` is blank."""
    page_size = clamp_limit(limit)
    term = (q or "").strip()
    if term:
        return SearchResult(
            users=search_users(db, term, limit=page_size),
            posts=search_posts(db, term, limit=page_size, viewer=viewer),
        )

    users = browse_users(db, cursor=user_cursor, limit=page_size)
    posts, next_post_cursor = browse_posts(db, cursor=post_cursor, limit=page_size, viewer=viewer)
    return SearchResult(
        users=users.users,
        posts=posts,
        next_user_cursor=users.next_cursor,
        next_post_cursor=next_post_cursor,
    )
