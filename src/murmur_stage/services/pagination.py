"""Opaque keyset cursors shared by every list endpoint.

A cursor is ``"<iso-time>|<key>"`` where ``key`` is the secondary,
strictly increasing identifier of the row (``order_index`` for feed items,
the primary key elsewhere). Rows are read in ``(time DESC, key DESC)``
order and the next page starts strictly after the last row returned, so
inserts of newer rows never shift later pages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, and_, or_

from murmur_stage.core.errors import ValidationFailed
from murmur_stage.core.settings import settings
from murmur_stage.db.time import ensure_utc

logger = logging.getLogger(__name__)

_SEPARATOR = "|"


@dataclass(frozen=True)
class Cursor:
    """Decoded position within a ``(time DESC, key DESC)`` ordering."""

    time: datetime
    key: int


def encode_cursor(time: datetime, key: int) -> str:
    """Return the opaque cursor for the row at ``(time, key)``."""
    return f"{ensure_utc(time).isoformat()}{_SEPARATOR}{key}"


def decode_cursor(raw: str | None, *, strict: bool | None = None) -> Cursor | None:
    """Parse ``raw`` into a :class:`Cursor`.

    Args:
        raw: Cursor string from the client, or ``None`` for the first page.
        strict: Overrides ``FEED_STRICT_CURSOR`` when given.

    Returns:
        The decoded cursor, or ``None`` to read from the start.

    Raises:
        ValidationFailed: If the cursor is malformed and strict mode is on.
    """
    if raw is None or raw == "":
        return None

    strict = settings.feed_strict_cursor if strict is None else strict
    time_part, sep, key_part = raw.rpartition(_SEPARATOR)
    try:
        if not sep:
            raise ValueError("missing separator")
        cursor = Cursor(time=ensure_utc(datetime.fromisoformat(time_part)), key=int(key_part))
    except ValueError:
        if strict:
            raise ValidationFailed("Invalid cursor", code="INVALID_CURSOR") from None
        logger.warning("Ignoring malformed cursor %r; serving the first page", raw)
        return None
    return cursor


def decode_id_cursor(raw: str | None, *, strict: bool | None = None) -> int | None:
    """Parse an ascending-id cursor (used by user browsing)."""
    if raw is None or raw == "":
        return None
    strict = settings.feed_strict_cursor if strict is None else strict
    try:
        return int(raw)
    except ValueError:
        if strict:
            raise ValidationFailed("Invalid cursor", code="INVALID_CURSOR") from None
        logger.warning("Ignoring malformed cursor %r; serving the first page", raw)
        return None


def clamp_limit(limit: int | None, *, default: int | None = None, maximum: int | None = None) -> int:
    """Clamp a requested page size into ``[1, maximum]``."""
    default = settings.feed_default_limit if default is None else default
    maximum = settings.feed_max_limit if maximum is None else maximum
    if limit is None:
        return min(default, maximum)
    return max(1, min(int(limit), maximum))


def keyset_before(time_column: Any, key_column: Any, cursor: Cursor) -> ColumnElement[bool]:
    """Return the predicate selecting rows strictly after ``cursor`` in DESC order."""
    return or_(
        time_column < cursor.time,
        and_(time_column == cursor.time, key_column < cursor.key),
    )
