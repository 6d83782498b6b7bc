"""
Clock-aligned archive boundaries.

Boundaries are multiples of the interval since the Unix epoch (UTC), so an
hourly dimension fires on the hour and a 10 minute one at :00, :10, :20...
no matter when the process started.
"""

from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def truncate(t: datetime, interval: timedelta) -> datetime:
    """Round ``t`` down to a multiple of ``interval`` since the epoch."""
    if interval <= timedelta(0):
        raise ValueError(f"Interval must be positive, got {interval}")
    elapsed = _as_utc(t) - EPOCH
    return EPOCH + (elapsed // interval) * interval


def next_boundary(t: datetime, interval: timedelta) -> datetime:
    """The first aligned boundary strictly after ``t``."""
    return truncate(t, interval) + interval
