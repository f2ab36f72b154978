# backend/passdesk/services/conflict_checker.py
"""
Conflict Checker Service for PassDesk

Decides whether a tentative booking fits a student's week:
- Capacity of the target batch
- Duplicate batch / same subject at the same center / duplicate pass
- Weekly overlap with the student's active enrollments
- Weekly overlap with the other items in the student's reservation
- Teacher double-booking when a business creates or edits a batch

Checks are read-only and return a ConflictResult; callers decide whether
to raise (see domain.conflicts.ensure_compatible).
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..domain.candidate import BookingCandidate
from ..domain.conflicts import (
    ALSO_AT_OTHER_CENTER_NOTE,
    BACK_TO_BACK_NOTE,
    AlreadyReserved,
    CapacityFull,
    ConflictResult,
    EntityRef,
    NoteCollector,
    schedule_conflict,
)
from ..domain.overlap import TimeSlot, is_back_to_back, overlaps
from ..models.batch import Batch, normalize_teacher_name
from ..models.enrollment import Enrollment
from ..models.pass_template import PassTemplate
from ..models.reservation import ReservationItem
from ..repositories import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _same_subject(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts.

    Centralizes all conflict detection so the reservation, checkout,
    switch and batch flows apply identical rules.
    """

    def __init__(self, db: Session, clock=None):
        super().__init__(db, clock)
        self.batch_repository = RepositoryFactory.create_batch_repository(db)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)
        self.pass_template_repository = RepositoryFactory.create_pass_template_repository(db)

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    def get_batch(self, batch_id: str) -> Batch:
        batch = self.batch_repository.get_by_id(batch_id)
        if batch is None:
            raise NotFoundException(f"Batch {batch_id} not found", code="BATCH_NOT_FOUND")
        return batch

    def get_pass_template(self, pass_template_id: str) -> PassTemplate:
        template = self.pass_template_repository.get_by_id(pass_template_id)
        if template is None or not template.is_active:
            raise NotFoundException(
                f"Pass {pass_template_id} not found", code="PASS_TEMPLATE_NOT_FOUND"
            )
        return template

    # ------------------------------------------------------------------
    # Student checks
    # ------------------------------------------------------------------

    @BaseService.measure_operation("check_candidate")
    def check_candidate(
        self,
        student_id: str,
        candidate: BookingCandidate,
        reservation_items: Sequence[ReservationItem] = (),
    ) -> ConflictResult:
        """Check a candidate against enrollments and the current reservation."""
        if candidate.is_class:
            batch = self.get_batch(candidate.batch_id)
            result = self.check_batch_for_student(student_id, batch, reservation_items)
        else:
            template = self.get_pass_template(candidate.pass_template_id)
            result = self.check_pass_for_student(student_id, template, reservation_items)

        if result.has_conflict:
            self.logger.warning(
                f"Candidate {candidate.offering_id} rejected for student {student_id}: "
                f"{result.kind} - {result.message}"
            )
        return result

    def check_batch_for_student(
        self,
        student_id: str,
        batch: Batch,
        reservation_items: Iterable[ReservationItem] = (),
        exclude_enrollment_id: Optional[str] = None,
        check_capacity: bool = True,
        check_duplicates: bool = True,
    ) -> ConflictResult:
        """
        Full student-side check for one batch.

        Order: capacity, duplicates, active enrollments, reservation items.
        """
        if check_capacity and batch.is_full:
            return CapacityFull(
                batch_id=batch.id,
                capacity=batch.capacity,
                enrolled_count=batch.enrolled_count,
                message=f"{batch.display_label} is full ({batch.capacity} seats)",
            )

        enrollments = self.enrollment_repository.get_active_class_enrollments(
            student_id, exclude_enrollment_id=exclude_enrollment_id
        )
        items = [i for i in reservation_items if i.is_class and i.batch is not None]

        if check_duplicates:
            duplicate = self._find_duplicate(batch, enrollments, items)
            if duplicate is not None:
                return duplicate

        notes = NoteCollector()
        slot = batch.slot

        existing: List[Tuple[Batch, EntityRef, str]] = [
            (e.batch, EntityRef("enrollment", e.id, e.title), "enrollment") for e in enrollments
        ]
        existing += [
            (i.batch, EntityRef("reservation_item", i.id, i.title), "reservation") for i in items
        ]

        for other, ref, source in existing:
            other_slot = other.slot
            overlap = overlaps(slot, other_slot)
            if overlap.has_conflict:
                return schedule_conflict(slot, other_slot, overlap, ref, source)
            if is_back_to_back(slot, other_slot):
                notes.add(BACK_TO_BACK_NOTE.format(label=ref.label))
            if other.business_id != batch.business_id and _same_subject(other.subject, batch.subject):
                notes.add(ALSO_AT_OTHER_CENTER_NOTE.format(subject=batch.subject))

        return notes.result()

    def _find_duplicate(
        self,
        batch: Batch,
        enrollments: Sequence[Enrollment],
        items: Sequence[ReservationItem],
    ) -> Optional[AlreadyReserved]:
        holdings = [(e.batch, EntityRef("enrollment", e.id, e.title), "enrolled in") for e in enrollments]
        holdings += [(i.batch, EntityRef("reservation_item", i.id, i.title), "reserved") for i in items]

        for other, ref, verb in holdings:
            if other.id == batch.id:
                return AlreadyReserved(
                    reason="duplicate_batch",
                    offending=ref,
                    message=f"You have already {verb} this batch",
                )
        for other, ref, verb in holdings:
            if other.business_id == batch.business_id and _same_subject(other.subject, batch.subject):
                return AlreadyReserved(
                    reason="same_subject",
                    offending=ref,
                    message=(
                        f"You have already {verb} a {batch.subject} batch at this center. "
                        "Contact the center to switch batches."
                    ),
                )
        return None

    def check_pass_for_student(
        self,
        student_id: str,
        template: PassTemplate,
        reservation_items: Iterable[ReservationItem] = (),
    ) -> ConflictResult:
        """One active pass per business; one copy of a pass per reservation."""
        for item in reservation_items:
            if item.pass_template_id == template.id:
                return AlreadyReserved(
                    reason="active_pass",
                    offending=EntityRef("reservation_item", item.id, item.title),
                    message="This pass is already in your reservation",
                )

        active = self.enrollment_repository.get_active_passes_at_business(
            student_id, template.business_id
        )
        if active:
            existing = active[0]
            return AlreadyReserved(
                reason="active_pass",
                offending=EntityRef("enrollment", existing.id, existing.title),
                message=(
                    f"You already have an active pass at this business until {existing.end_date}"
                ),
            )
        return NoteCollector().result()

    @BaseService.measure_operation("check_reservation")
    def check_reservation(self, student_id: str, items: Sequence[ReservationItem]) -> ConflictResult:
        """
        Re-validate a whole reservation.

        Every item is checked against the student's enrollments and against
        each item before it, so all pairs are covered once. Returns the
        first failure, or a Compatible carrying all notes.
        """
        notes = NoteCollector()
        for index, item in enumerate(items):
            earlier = items[:index]
            if item.is_class:
                result = self.check_batch_for_student(student_id, item.batch, earlier)
            else:
                result = self.check_pass_for_student(student_id, item.pass_template, earlier)
            if result.has_conflict:
                self.logger.warning(
                    f"Reservation for {student_id} failed re-validation on item {item.id}: "
                    f"{result.kind}"
                )
                return result
            for note in result.notes:
                notes.add(note)
        return notes.result()

    # ------------------------------------------------------------------
    # Teacher check
    # ------------------------------------------------------------------

    @BaseService.measure_operation("check_teacher_conflict")
    def check_teacher_conflict(
        self,
        business_id: str,
        teacher_name: str,
        slot: TimeSlot,
        exclude_batch_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Check a (teacher, pattern, time) against the teacher's other batches.

        Names match case- and whitespace-insensitively; cancelled and
        completed batches are ignored, as is the batch being edited.
        """
        teacher_batches = self.batch_repository.get_teacher_batches(
            business_id, normalize_teacher_name(teacher_name), exclude_batch_id=exclude_batch_id
        )
        notes = NoteCollector()
        for other in teacher_batches:
            other_slot = other.slot
            overlap = overlaps(slot, other_slot)
            if overlap.has_conflict:
                self.logger.warning(
                    f"Teacher conflict for {teacher_name!r}: overlaps batch {other.id} "
                    f"by {overlap.minutes} minutes"
                )
                return schedule_conflict(
                    slot,
                    other_slot,
                    overlap,
                    EntityRef("batch", other.id, other.display_label),
                    "teacher",
                )
            if is_back_to_back(slot, other_slot):
                notes.add(BACK_TO_BACK_NOTE.format(label=other.display_label))
        return notes.result()
