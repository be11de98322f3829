# src/murmur_stage/services/__init__.py
"""Business logic services for the Murmur application."""

from .realtime import ConnectionManager, EventBus, RealtimeBroadcaster
from .storage import S3BlobStore
from .token_blacklist import RedisTokenBlacklist

__all__ = [
    "ConnectionManager",
    "EventBus",
    "RealtimeBroadcaster",
    "S3BlobStore",
    "RedisTokenBlacklist",
]
