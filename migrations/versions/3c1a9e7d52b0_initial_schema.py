"""initial schema

Revision ID: 3c1a9e7d52b0
Revises:
Create Date: 2026-10-18 09:12:41.208331

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1a9e7d52b0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create accounts, posts, engagement, polls and notifications."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(50), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("profile_picture", sa.Text(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("last_active_at", nullable=True),
    )
    op.create_index("ix_user_account_username", "user_account", ["username"], unique=True)
    op.create_index("ix_user_account_email", "user_account", ["email"], unique=True)

    op.create_table(
        "user_follow",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "follower_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "following_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_user_follow_pair"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_user_follow_not_self"),
    )
    op.create_index("ix_user_follow_follower_id", "user_follow", ["follower_id"])
    op.create_index("ix_user_follow_following_id", "user_follow", ["following_id"])

    op.create_table(
        "feed_sequence",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_index", sa.Integer(), nullable=False, unique=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("content_type", sa.String(10), nullable=False, server_default="text"),
        sa.Column("media_urls", sa.JSON(), nullable=False),
        sa.Column("mentions", sa.JSON(), nullable=False),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("retweet_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("deleted_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("like_count >= 0", name="ck_post_like_count"),
        sa.CheckConstraint("retweet_count >= 0", name="ck_post_retweet_count"),
        sa.CheckConstraint("comment_count >= 0", name="ck_post_comment_count"),
    )
    op.create_index("ix_post_user_id", "post", ["user_id"])
    op.create_index("ix_post_created_order", "post", ["created_at", "order_index"])

    op.create_table(
        "post_hashtag",
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("tag", sa.String(100), primary_key=True),
    )
    op.create_index("ix_post_hashtag_tag", "post_hashtag", ["tag"])

    op.create_table(
        "post_like",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "post_id", name="uq_post_like_user_post"),
    )
    op.create_index("ix_post_like_post_id", "post_like", ["post_id"])

    op.create_table(
        "post_retweet",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_index", sa.Integer(), nullable=False, unique=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("comment", sa.String(280), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "post_id", name="uq_post_retweet_user_post"),
    )
    op.create_index("ix_post_retweet_post_id", "post_retweet", ["post_id"])
    op.create_index(
        "ix_post_retweet_created_order", "post_retweet", ["created_at", "order_index"]
    )

    op.create_table(
        "post_comment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_post_comment_post_created", "post_comment", ["post_id", "created_at"])

    op.create_table(
        "poll",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("question", sa.Text(), nullable=False),
        _timestamp("expires_at", nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "poll_option",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "poll_id",
            sa.Integer(),
            sa.ForeignKey("poll.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("option_text", sa.String(100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("vote_count >= 0", name="ck_poll_option_vote_count"),
    )
    op.create_index("ix_poll_option_poll_id", "poll_option", ["poll_id"])

    op.create_table(
        "poll_vote",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "poll_id",
            sa.Integer(),
            sa.ForeignKey("poll.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "option_id",
            sa.Integer(),
            sa.ForeignKey("poll_option.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("poll_id", "user_id", name="uq_poll_vote_poll_user"),
    )
    op.create_index("ix_poll_vote_option_id", "poll_vote", ["option_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "recipient_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "actor_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("post.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_notification_recipient_created", "notification", ["recipient_id", "created_at"]
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    for table in (
        "notification",
        "poll_vote",
        "poll_option",
        "poll",
        "post_comment",
        "post_retweet",
        "post_like",
        "post_hashtag",
        "post",
        "feed_sequence",
        "user_follow",
        "user_account",
    ):
        op.drop_table(table)
