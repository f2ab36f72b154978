"""Pure scheduling logic: patterns, overlap and conflict results."""

from .conflicts import (
    COMPATIBLE,
    AlreadyReserved,
    CapacityFull,
    Compatible,
    ConflictResult,
    EntityRef,
    ScheduleConflict,
    ensure_compatible,
)
from .overlap import SlotOverlap, TimeSlot, overlaps
from .schedule_patterns import format_minutes, to_minutes, weekdays_of

__all__ = [
    "COMPATIBLE",
    "AlreadyReserved",
    "CapacityFull",
    "Compatible",
    "ConflictResult",
    "EntityRef",
    "ScheduleConflict",
    "SlotOverlap",
    "TimeSlot",
    "ensure_compatible",
    "format_minutes",
    "overlaps",
    "to_minutes",
    "weekdays_of",
]
