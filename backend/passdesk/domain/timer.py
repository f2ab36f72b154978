"""Reservation timer: a pure function of (expiry, now)."""

from datetime import datetime, timedelta
import math
from typing import Optional

from passdesk.core.timezone_utils import ensure_utc


def expiry_from(now: datetime, window_minutes: int) -> datetime:
    return ensure_utc(now) + timedelta(minutes=window_minutes)


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    """A reservation is void from the instant its timer reaches zero."""
    if expires_at is None:
        return False
    return ensure_utc(now) >= ensure_utc(expires_at)


def remaining_seconds(expires_at: Optional[datetime], now: datetime) -> int:
    """
    Whole seconds left on the timer, rounded up.

    Zero exactly when ``is_expired`` is true (or no timer is running), so a
    zero reading can never be mistaken for a checkout-eligible reservation.
    """
    if expires_at is None:
        return 0
    delta = (ensure_utc(expires_at) - ensure_utc(now)).total_seconds()
    return max(0, math.ceil(delta))
