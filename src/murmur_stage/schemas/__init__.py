# src/murmur_stage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import CountResponse, Envelope, MessageResponse
from .notification import NotificationPage, NotificationView
from .poll import PollCreate, PollView, PollVoteRequest
from .post import CommentView, FeedItem, FeedPage, PostView, ToggleResponse
from .search import SearchResponse
from .user import LoginRequest, RegisterRequest, UserProfile, UserSummary

__all__ = [
    "CountResponse", "Envelope", "MessageResponse",
    "NotificationPage", "NotificationView",
    "PollCreate", "PollView", "PollVoteRequest",
    "CommentView", "FeedItem", "FeedPage", "PostView", "ToggleResponse",
    "SearchResponse",
    "LoginRequest", "RegisterRequest", "UserProfile", "UserSummary",
]
