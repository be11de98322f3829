# src/murmur_stage/models/__init__.py
"""SQLAlchemy models for the Murmur application."""

from .engagement import Comment, Like, Retweet
from .notification import Notification, NotificationType
from .poll import Poll, PollOption, PollVote
from .post import FeedSequence, Post, PostHashtag
from .user import Follow, User

__all__ = [
    "Comment", "Like", "Retweet",
    "Notification", "NotificationType",
    "Poll", "PollOption", "PollVote",
    "FeedSequence", "Post", "PostHashtag",
    "Follow", "User",
]
