"""
DateTime utilities for access-consent operations.

This module provides timezone-aware "now", normalization of datetimes read back
from databases that drop timezone information, and the day arithmetic used for
request deadlines and grant durations.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")

Clock = Callable[[], datetime]


def get_current_utc() -> datetime:
    """Get the current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return ``dt`` as an aware UTC datetime.

    SQLite stores ``DateTime(timezone=True)`` columns without an offset, so
    values come back naive. Naive values are treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def add_days(start: datetime, days: int) -> datetime:
    """Return ``start`` shifted by a whole number of days."""
    return ensure_utc(start) + timedelta(days=days)


def utc_date(dt: datetime) -> date:
    """Calendar date of ``dt`` in UTC."""
    return ensure_utc(dt).date()


def is_same_utc_day(first: datetime, second: datetime) -> bool:
    """Check whether two datetimes fall on the same UTC calendar day."""
    return utc_date(first) == utc_date(second)


def is_past(dt: Optional[datetime], now: datetime) -> bool:
    """
    Check whether a deadline has passed.

    A missing deadline never passes. A deadline equal to ``now`` counts as
    passed, so an instant is never both live and expired.
    """
    if dt is None:
        return False
    return ensure_utc(dt) <= ensure_utc(now)
