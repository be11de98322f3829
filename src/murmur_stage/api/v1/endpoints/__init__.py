# src/murmur_stage/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .notifications import router as notifications_router
from .polls import router as polls_router
from .posts import router as posts_router
from .realtime import router as realtime_router
from .search import router as search_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "notifications_router",
    "polls_router",
    "posts_router",
    "realtime_router",
    "search_router",
    "users_router",
]
