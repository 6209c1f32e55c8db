# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for LearnSync.

All timestamps handled by the engine are timezone-aware UTC datetimes so that
idle checks and recency ordering never mix naive and aware values.

Usage:
------
    from learnsync.utils.datetime import utc_now

    # For pydantic model defaults
    created_at: datetime = Field(default_factory=utc_now)
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    """Return the number of minutes between two datetimes.

    Naive datetimes are treated as UTC.

    Args:
        start: Earlier datetime.
        end: Later datetime.

    Returns:
        Elapsed minutes as a float (negative if end precedes start).
    """
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60.0
