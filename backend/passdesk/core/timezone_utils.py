"""
Timezone utilities for the PassDesk engine.

All persisted instants are UTC. Calendar decisions (start dates, lock
windows, batch status) are taken in the business's local timezone.
"""

from datetime import date, datetime
from typing import Callable

import pytz

DEFAULT_TIMEZONE = "Asia/Kolkata"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    SQLite drops tzinfo on round-trip, so naive values read back from the
    store are assumed to be UTC.
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def get_timezone(name: str):
    """Resolve a timezone name, falling back to the platform default."""
    try:
        return pytz.timezone(name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(DEFAULT_TIMEZONE)


def local_today(now: datetime, timezone_name: str) -> date:
    """The calendar date of ``now`` in the given timezone."""
    return ensure_utc(now).astimezone(get_timezone(timezone_name)).date()
