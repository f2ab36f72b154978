"""
Conflict results.

A conflict check yields exactly one of Compatible, ScheduleConflict,
CapacityFull or AlreadyReserved. Results are recomputed on every check and
never persisted.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from passdesk.core.enums import Weekday
from passdesk.core.exceptions import (
    AlreadyReservedException,
    CapacityException,
    ScheduleConflictException,
    TeacherConflictException,
)

from .overlap import SlotOverlap, TimeSlot
from .schedule_patterns import format_minutes

BACK_TO_BACK_NOTE = "Back-to-back with {label}: no break between classes"
ALSO_AT_OTHER_CENTER_NOTE = "You also study {subject} at another center"


@dataclass(frozen=True)
class EntityRef:
    """What the candidate collided with."""

    kind: str  # enrollment | reservation_item | batch | pass_template
    id: str
    label: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "id": self.id, "label": self.label}


@dataclass(frozen=True)
class Compatible:
    notes: Tuple[str, ...] = ()

    has_conflict: ClassVar[bool] = False
    kind: ClassVar[str] = "compatible"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "has_conflict": False, "notes": list(self.notes)}


@dataclass(frozen=True)
class ScheduleConflict:
    overlap_days: Tuple[Weekday, ...]
    overlap_minutes: int
    offending: EntityRef
    source: str  # enrollment | reservation | teacher
    message: str
    exact: bool = False

    has_conflict: ClassVar[bool] = True
    kind: ClassVar[str] = "schedule_conflict"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "has_conflict": True,
            "source": self.source,
            "overlap_days": [day.value for day in self.overlap_days],
            "overlap_minutes": self.overlap_minutes,
            "exact": self.exact,
            "offending": self.offending.to_dict(),
            "message": self.message,
        }


@dataclass(frozen=True)
class CapacityFull:
    batch_id: str
    capacity: int
    enrolled_count: int
    message: str = "This batch is full"

    has_conflict: ClassVar[bool] = True
    kind: ClassVar[str] = "capacity_full"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "has_conflict": True,
            "batch_id": self.batch_id,
            "capacity": self.capacity,
            "enrolled_count": self.enrolled_count,
            "message": self.message,
        }


@dataclass(frozen=True)
class AlreadyReserved:
    reason: str  # duplicate_batch | same_subject | active_pass
    offending: EntityRef
    message: str

    has_conflict: ClassVar[bool] = True
    kind: ClassVar[str] = "already_reserved"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "has_conflict": True,
            "reason": self.reason,
            "offending": self.offending.to_dict(),
            "message": self.message,
        }


ConflictResult = Union[Compatible, ScheduleConflict, CapacityFull, AlreadyReserved]

COMPATIBLE = Compatible()


@dataclass
class NoteCollector:
    """Accumulates non-blocking notes while a check walks existing slots."""

    notes: list = field(default_factory=list)

    def add(self, note: Optional[str]) -> None:
        if note and note not in self.notes:
            self.notes.append(note)

    def result(self) -> Compatible:
        return Compatible(tuple(self.notes)) if self.notes else COMPATIBLE


def describe_overlap(candidate: TimeSlot, existing: TimeSlot, overlap: SlotOverlap, label: str) -> str:
    """Human-readable reason for a schedule conflict."""
    days = ", ".join(day.label for day in overlap.days)
    window = f"{format_minutes(existing.start)}-{format_minutes(existing.end)}"
    if candidate.start == existing.start and candidate.end == existing.end:
        return f"Exact duplicate slot: {label} runs at the same time ({window}) on {days}"
    if existing.contains(candidate):
        return f"This time falls completely within {label} ({window}) on {days}"
    if candidate.contains(existing):
        return f"This time completely covers {label} ({window}) on {days}"
    return f"Partial overlap of {overlap.minutes} minutes with {label} ({window}) on {days}"


def schedule_conflict(
    candidate: TimeSlot,
    existing: TimeSlot,
    overlap: SlotOverlap,
    offending: EntityRef,
    source: str,
) -> ScheduleConflict:
    return ScheduleConflict(
        overlap_days=overlap.days,
        overlap_minutes=overlap.minutes,
        offending=offending,
        source=source,
        message=describe_overlap(candidate, existing, overlap, offending.label or offending.id),
        exact=candidate.start == existing.start and candidate.end == existing.end,
    )


def ensure_compatible(result: ConflictResult) -> Compatible:
    """Return the result if compatible, otherwise raise its exception."""
    if isinstance(result, Compatible):
        return result
    if isinstance(result, ScheduleConflict):
        if result.source == "teacher":
            raise TeacherConflictException(result)
        raise ScheduleConflictException(result)
    if isinstance(result, CapacityFull):
        raise CapacityException(result)
    raise AlreadyReservedException(result)
