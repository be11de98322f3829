"""Revoked-token blacklist shared across server instances through Redis."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

import redis

from murmur_stage.core.security import token_fingerprint
from murmur_stage.core.settings import settings
from murmur_stage.db.time import utcnow

logger = logging.getLogger(__name__)


class TokenBlacklist(Protocol):
    """Storage for tokens revoked before their natural expiry."""

    def revoke(self, token: str, expires_at: datetime) -> None:
        ...

    def is_revoked(self, token: str) -> bool:
        ...


class RedisTokenBlacklist:
    """Redis-backed blacklist.

    Each revoked token is a key named after its SHA-256 fingerprint whose TTL
    is the token's remaining lifetime, so entries vanish once the token would
    have expired anyway.
    """

    def __init__(self, client: redis.Redis | None = None) -> None:
        self._redis = client if client is not None else redis.from_url(settings.redis_url)
        self._prefix = settings.token_blacklist_prefix

    def _key(self, token: str) -> str:
        return f"{self._prefix}:{token_fingerprint(token)}"

    def revoke(self, token: str, expires_at: datetime) -> None:
        """Blacklist ``token`` until ``expires_at``.

        Raises:
            redis.RedisError: If the entry could not be written.
        """
        ttl = int((expires_at - utcnow()).total_seconds())
        if ttl <= 0:
            return
        self._redis.set(self._key(token), "1", ex=ttl)

    def is_revoked(self, token: str) -> bool:
        """Return True if ``token`` was revoked.

        A Redis outage fails open: the token is treated as valid and the
        failure is logged.
        """
        try:
            return bool(self._redis.exists(self._key(token)))
        except redis.RedisError as exc:
            logger.error("Token blacklist lookup failed, allowing request: %s", exc)
            return False


_blacklist: RedisTokenBlacklist | None = None


def get_token_blacklist() -> TokenBlacklist:
    """FastAPI dependency returning the process-wide blacklist client."""
    global _blacklist
    if _blacklist is None:
        _blacklist = RedisTokenBlacklist()
    return _blacklist
