"""Data access helpers for working with posts."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from murmur_stage.models.post import FeedSequence, Post, PostHashtag

__all__ = ["PostRepository", "next_order_index"]


def next_order_index(db: Session) -> int:
    """Allocate the next feed ``order_index``.

    The value comes from an autoincrement row, so it is unique and increasing
    across processes and survives restarts.
    """
    row = FeedSequence()
    db.add(row)
    db.flush()
    return row.id


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_visible(self, post_id: int) -> Post | None:
        """Return a post that has not been soft-deleted."""
        return self.session.execute(
            select(Post).where(Post.id == post_id, Post.deleted.is_(False))
        ).scalars().first()

    def get_including_deleted(self, post_id: int) -> Post | None:
        """Return a post regardless of its deletion state (audit access)."""
        return self.session.get(Post, post_id)

    def lock_visible(self, post_id: int) -> Post | None:
        """Return a live post with its row locked for the current transaction."""
        return self.session.execute(
            select(Post)
            .where(Post.id == post_id, Post.deleted.is_(False))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()

    def create(
        self,
        *,
        user_id: int,
        content: str | None,
        content_type: str,
        media_urls: list[str],
        mentions: list[str],
        hashtags: list[str],
        location: str | None,
    ) -> Post:
        """Insert a new post with its hashtags and return the persisted ORM instance."""
        post = Post(
            order_index=next_order_index(self.session),
            user_id=user_id,
            content=content,
            content_type=content_type,
            media_urls=media_urls,
            mentions=mentions,
            location=location,
        )
        self.session.add(post)
        self.session.flush()
        for tag in hashtags:
            self.session.add(PostHashtag(post_id=post.id, tag=tag))
        self.session.flush()
        return post

    def hashtags_for(self, post_ids: list[int]) -> dict[int, list[str]]:
        """Return hashtags keyed by post id."""
        if not post_ids:
            return {}
        rows = self.session.execute(
            select(PostHashtag.post_id, PostHashtag.tag)
            .where(PostHashtag.post_id.in_(post_ids))
            .order_by(PostHashtag.tag)
        )
        tags: dict[int, list[str]] = {}
        for post_id, tag in rows:
            tags.setdefault(post_id, []).append(tag)
        return tags

    def count_by_author(self, user_id: int) -> int:
        return self.session.execute(
            select(func.count()).select_from(Post).where(
                Post.user_id == user_id, Post.deleted.is_(False)
            )
        ).scalar_one()
