"""Weekly time-slot overlap."""

from dataclasses import dataclass
from typing import FrozenSet, Tuple

from passdesk.core.enums import Weekday
from passdesk.core.exceptions import ValidationException

from .schedule_patterns import format_minutes, sort_days, to_minutes, weekdays_of


@dataclass(frozen=True)
class TimeSlot:
    """A recurring weekly slot: a weekday set and a [start, end) minute range."""

    days: FrozenSet[Weekday]
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationException(
                "Start time must be before end time",
                code="INVALID_TIME_RANGE",
                details={"start": format_minutes(self.start), "end": format_minutes(self.end)},
            )

    @classmethod
    def from_schedule(cls, pattern: str, start_time: str, end_time: str) -> "TimeSlot":
        return cls(weekdays_of(pattern), to_minutes(start_time), to_minutes(end_time))

    @property
    def duration(self) -> int:
        return self.end - self.start

    def contains(self, other: "TimeSlot") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class SlotOverlap:
    has_conflict: bool
    days: Tuple[Weekday, ...] = ()
    minutes: int = 0


NO_OVERLAP = SlotOverlap(False)


def overlaps(a: TimeSlot, b: TimeSlot) -> SlotOverlap:
    """
    Overlap of two weekly slots.

    Ranges are half-open, so a slot ending at 17:00 and one starting at
    17:00 do not overlap. The result is the same for (a, b) and (b, a).
    """
    common = a.days & b.days
    if not common:
        return NO_OVERLAP
    if not (a.start < b.end and b.start < a.end):
        return NO_OVERLAP
    minutes = min(a.end, b.end) - max(a.start, b.start)
    return SlotOverlap(True, sort_days(common), minutes)


def is_back_to_back(a: TimeSlot, b: TimeSlot) -> bool:
    """Slots sharing a day where one ends exactly as the other begins."""
    return bool(a.days & b.days) and (a.end == b.start or b.end == a.start)
