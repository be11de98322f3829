# src/murmur_stage/models/post.py
"""SQLAlchemy models for posts and related attributes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from murmur_stage.db.session import Base
from murmur_stage.db.time import utcnow


class FeedSequence(Base):
    """Row-per-allocation source of feed ``order_index`` values.

    Posts and retweets share this sequence, which keeps the secondary sort key
    unique across both feed item kinds.
    """

    __tablename__ = "feed_sequence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class Post(Base):
    """Primary content entity produced by users."""

    __tablename__ = "post"
    __table_args__ = (
        CheckConstraint("like_count >= 0", name="ck_post_like_count"),
        CheckConstraint("retweet_count >= 0", name="ck_post_retweet_count"),
        CheckConstraint("comment_count >= 0", name="ck_post_comment_count"),
        Index("ix_post_created_order", "created_at", "order_index"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Tie-break for posts sharing a created_at; never reused.
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )

    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "text", "image", "video" or "mixed".
    content_type: Mapped[str] = mapped_column(String(10), default="text", nullable=False)
    media_urls: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    mentions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)

    like_count: Mapped[int] = mapped_column(default=0, nullable=False)
    retweet_count: Mapped[int] = mapped_column(default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(default=0, nullable=False)

    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class PostHashtag(Base):
    """Lower-cased hashtag extracted from a post body."""

    __tablename__ = "post_hashtag"

    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("post.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(100), primary_key=True, index=True)
