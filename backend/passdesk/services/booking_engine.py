# backend/passdesk/services/booking_engine.py
"""
Booking Engine facade.

One object per session exposing the engine's public operations. Queries
return immutable snapshots; mutations raise DomainException subclasses
when rejected.
"""

from datetime import date, datetime
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..domain.candidate import BookingCandidate, ContactInfo
from ..domain.conflicts import ConflictResult
from ..domain.snapshots import (
    BatchSnapshot,
    EnrollmentSnapshot,
    ReservationItemSnapshot,
    ReservationSnapshot,
    TransactionReceipt,
)
from .base import BaseService
from .batch_service import BatchService, BatchSpec
from .checkout_service import CheckoutService
from .conflict_checker import ConflictChecker
from .enrollment_policy_service import EnrollmentPolicyService
from .reservation_service import AddResult, ReservationService

logger = logging.getLogger(__name__)


class BookingEngine(BaseService):
    def __init__(self, db: Session, config: Optional[Settings] = None, clock=None):
        super().__init__(db, clock)
        self.config = config or default_settings
        self.conflicts = ConflictChecker(db, clock=self.clock)
        self.reservations = ReservationService(
            db, conflict_checker=self.conflicts, config=self.config, clock=self.clock
        )
        self.checkout_service = CheckoutService(
            db,
            reservation_service=self.reservations,
            conflict_checker=self.conflicts,
            config=self.config,
            clock=self.clock,
        )
        self.policies = EnrollmentPolicyService(
            db, conflict_checker=self.conflicts, config=self.config, clock=self.clock
        )
        self.batches = BatchService(db, conflict_checker=self.conflicts, clock=self.clock)

    # Student-facing

    def check_add(self, student_id: str, candidate: BookingCandidate) -> ConflictResult:
        return self.reservations.check_add(student_id, candidate)

    def add_to_reservation(self, student_id: str, candidate: BookingCandidate) -> AddResult:
        return self.reservations.add(student_id, candidate)

    def remove_from_reservation(self, student_id: str, item_id: str) -> None:
        self.reservations.remove(student_id, item_id)

    def clear_reservation(self, student_id: str) -> int:
        return self.reservations.clear(student_id)

    def remaining_reservation_seconds(self, student_id: str) -> int:
        return self.reservations.remaining_seconds(student_id)

    def extend_reservation(self, student_id: str) -> datetime:
        return self.reservations.extend_timer(student_id)

    def get_reservation(self, student_id: str) -> ReservationSnapshot:
        return self.reservations.snapshot(student_id)

    def update_reservation_item_start_date(
        self, student_id: str, item_id: str, start_date: date
    ) -> ReservationItemSnapshot:
        return self.reservations.update_item_start_date(student_id, item_id, start_date)

    def update_reservation_item_auto_renew(
        self, student_id: str, item_id: str, auto_renew: bool
    ) -> ReservationItemSnapshot:
        return self.reservations.update_item_auto_renew(student_id, item_id, auto_renew)

    def checkout(self, student_id: str, contact: ContactInfo) -> TransactionReceipt:
        return self.checkout_service.checkout(student_id, contact)

    def list_enrollments(self, student_id: str, active_only: bool = False) -> List[EnrollmentSnapshot]:
        return self.policies.list_for_student(student_id, active_only=active_only)

    def cancel_enrollment(self, enrollment_id: str) -> EnrollmentSnapshot:
        return self.policies.cancel_enrollment(enrollment_id)

    def switch_batch(self, enrollment_id: str, new_batch_id: str) -> EnrollmentSnapshot:
        return self.policies.switch_batch(enrollment_id, new_batch_id)

    def set_auto_renew(self, enrollment_id: str, auto_renew: bool) -> EnrollmentSnapshot:
        return self.policies.set_auto_renew(enrollment_id, auto_renew)

    # Business-facing

    def create_or_edit_batch(self, business_id: str, spec: BatchSpec) -> BatchSnapshot:
        return self.batches.create_or_edit_batch(business_id, spec)

    def cancel_batch(self, batch_id: str, business_id: Optional[str] = None) -> BatchSnapshot:
        return self.batches.cancel_batch(batch_id, business_id=business_id)

    def list_batches(self, business_id: str, include_closed: bool = False) -> List[BatchSnapshot]:
        return self.batches.list_batches(business_id, include_closed=include_closed)

    # Operations

    @BaseService.measure_operation("run_maintenance")
    def run_maintenance(self) -> Dict[str, int]:
        """Sweep reservations, expire enrollments and refresh batch statuses."""
        summary = {
            "reservations_swept": self.reservations.sweep_expired(),
            "enrollments_expired": self.policies.expire_enrollments(),
            "batches_updated": self.batches.refresh_statuses(),
        }
        self.logger.info(f"Maintenance run complete: {summary}")
        return summary
