from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


MAX_CONTENT_CHARS = 500_000
MAX_TITLE_CHARS = 255
# Keeps created_at + ttl well inside the datetime range.
MAX_TTL_SECONDS = 100 * 365 * 24 * 60 * 60
# Upper bound of the 32-bit max_views / view_count columns.
MAX_VIEWS_LIMIT = 2**31 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.

    Backends without timezone support (SQLite) hand back naive values; those
    are stored in UTC, so they are tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_expires_at(
    created_at: datetime,
    ttl_seconds: Optional[int],
) -> Optional[datetime]:
    """
    Absolute expiry for a paste created at ``created_at``.

    ``None`` or ``0`` means the paste never expires by time.
    """
    if not ttl_seconds:
        return None
    return as_utc(created_at) + timedelta(seconds=ttl_seconds)


def remaining_views(view_count: int, max_views: Optional[int]) -> Optional[int]:
    """Views left before exhaustion, or ``None`` when unlimited."""
    if max_views is None:
        return None
    return max(max_views - view_count, 0)
