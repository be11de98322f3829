# src/murmur_stage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    notifications_router,
    polls_router,
    posts_router,
    realtime_router,
    search_router,
    users_router,
)

__all__ = [
    "auth_router",
    "notifications_router",
    "polls_router",
    "posts_router",
    "realtime_router",
    "search_router",
    "users_router",
]
