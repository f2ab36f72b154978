# backend/passdesk/core/enums.py
"""
Core enums for the PassDesk engine.

Values are lowercase strings so they can be stored directly in String
columns and round-trip through JSON unchanged.
"""

from enum import Enum


class Weekday(str, Enum):
    """Days of the week, ordered Monday first to match date.weekday()."""

    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @property
    def position(self) -> int:
        return WEEK_ORDER.index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_date_index(cls, index: int) -> "Weekday":
        return WEEK_ORDER[index]


WEEK_ORDER = (
    Weekday.MON,
    Weekday.TUE,
    Weekday.WED,
    Weekday.THU,
    Weekday.FRI,
    Weekday.SAT,
    Weekday.SUN,
)


class BusinessVertical(str, Enum):
    """Kinds of businesses listed on the marketplace."""

    GYM = "gym"
    COACHING = "coaching"
    LIBRARY = "library"


class SubscriptionTier(str, Enum):
    """Business subscription plans (drive commission and fees)."""

    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class BatchStatus(str, Enum):
    """Batch lifecycle: scheduled -> active -> completed, or -> cancelled."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in (BatchStatus.SCHEDULED, BatchStatus.ACTIVE)


class EnrollmentStatus(str, Enum):
    """Enrollment / pass lifecycle."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PassTier(str, Enum):
    """Duration tiers for non-class passes."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
