# backend/passdesk/services/enrollment_policy_service.py
"""
Enrollment Policy Service for PassDesk

Rules that apply after checkout:
- Switch once: a class enrollment may move to another batch of the same
  subject at the same center once, and only while its start date is at
  least ``switch_notice_days`` away
- Monthly lock: monthly passes cannot be cancelled until
  ``monthly_lock_days`` have passed since they started
- Auto-renew flag toggling
- Expiry of enrollments past their end date, which frees their seats
"""

from datetime import date, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import lock_registry, offering_key
from ..core.config import Settings, settings as default_settings
from ..core.enums import EnrollmentStatus, PassTier
from ..core.exceptions import (
    BusinessRuleException,
    CapacityException,
    LockedException,
    NotFoundException,
    SwitchNotAllowedException,
    ValidationException,
)
from ..core.timezone_utils import local_today
from ..domain.conflicts import CapacityFull, ensure_compatible
from ..domain.snapshots import EnrollmentSnapshot
from ..models.enrollment import Enrollment
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)


class EnrollmentPolicyService(BaseService):
    """Capacity and policy guard for existing enrollments."""

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        config: Optional[Settings] = None,
        clock=None,
    ):
        super().__init__(db, clock)
        self.config = config or default_settings
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=self.clock)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)
        self.batch_repository = RepositoryFactory.create_batch_repository(db)

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = self.enrollment_repository.get_by_id(enrollment_id)
        if enrollment is None:
            raise NotFoundException(
                f"Enrollment {enrollment_id} not found", code="ENROLLMENT_NOT_FOUND"
            )
        return enrollment

    def _today(self, enrollment: Enrollment) -> date:
        return local_today(self.now(), enrollment.business.timezone)

    def _require_active(self, enrollment: Enrollment) -> None:
        if not enrollment.is_active:
            raise BusinessRuleException(
                f"Enrollment is {enrollment.status}",
                code="ENROLLMENT_NOT_ACTIVE",
                details={"enrollment_id": enrollment.id, "status": enrollment.status},
            )

    def list_for_student(self, student_id: str, active_only: bool = False) -> List[EnrollmentSnapshot]:
        return [
            EnrollmentSnapshot.from_model(e)
            for e in self.enrollment_repository.get_for_student(student_id, active_only=active_only)
        ]

    # ------------------------------------------------------------------
    # Switch once
    # ------------------------------------------------------------------

    def _check_switch_allowed(self, enrollment: Enrollment) -> None:
        if enrollment.switch_used:
            raise SwitchNotAllowedException(
                "You have already used your one batch switch for this pass",
                reason="already_used",
                details={"enrollment_id": enrollment.id},
            )
        if not enrollment.is_class:
            raise ValidationException(
                "Only class enrollments can switch batches", code="SWITCH_NOT_APPLICABLE"
            )
        self._require_active(enrollment)
        days_to_start = (enrollment.start_date - self._today(enrollment)).days
        if days_to_start < self.config.switch_notice_days:
            raise SwitchNotAllowedException(
                f"Batches can only be switched at least {self.config.switch_notice_days} "
                "days before the start date",
                reason="insufficient_notice",
                details={
                    "enrollment_id": enrollment.id,
                    "days_to_start": days_to_start,
                    "required_days": self.config.switch_notice_days,
                },
            )

    @BaseService.measure_operation("switch_batch")
    def switch_batch(self, enrollment_id: str, new_batch_id: str) -> EnrollmentSnapshot:
        """
        Move a class enrollment to another batch.

        A second switch on the same enrollment always fails with
        SwitchNotAllowedException, whatever the target.
        """
        enrollment = self.get_enrollment(enrollment_id)
        self._check_switch_allowed(enrollment)

        current = enrollment.batch
        target = self.conflict_checker.get_batch(new_batch_id)
        if target.id == current.id:
            raise ValidationException("Choose a different batch", code="SWITCH_TARGET_INVALID")
        if target.business_id != current.business_id or (
            target.subject.strip().lower() != current.subject.strip().lower()
        ):
            raise ValidationException(
                "You can only switch to another batch of the same subject at the same center",
                code="SWITCH_TARGET_INVALID",
                details={"current_batch_id": current.id, "target_batch_id": target.id},
            )
        if not target.is_open:
            raise BusinessRuleException(
                f"Batch {target.name} is {target.status} and cannot be booked",
                code="BATCH_NOT_OPEN",
            )

        with lock_registry.hold_many([offering_key(current.id), offering_key(target.id)]):
            self.db.expire_all()
            enrollment = self.get_enrollment(enrollment_id)
            self._check_switch_allowed(enrollment)
            target = self.conflict_checker.get_batch(new_batch_id)

            ensure_compatible(
                self.conflict_checker.check_batch_for_student(
                    enrollment.student_id, target, exclude_enrollment_id=enrollment.id
                )
            )

            with self.transaction():
                if not self.batch_repository.increment_enrolled(target.id):
                    raise CapacityException(
                        CapacityFull(
                            batch_id=target.id,
                            capacity=target.capacity,
                            enrolled_count=target.enrolled_count,
                            message=f"{target.display_label} is full",
                        )
                    )
                moved = self.enrollment_repository.move_if_unswitched(
                    enrollment.id,
                    current.id,
                    batch_id=target.id,
                    switched_from_batch_id=current.id,
                    subject=target.subject,
                    title=f"{target.subject} - {target.name} @ {target.business.name}",
                    switched_at=self.now(),
                )
                if not moved:
                    raise SwitchNotAllowedException(
                        "This enrollment changed while the switch was in progress",
                        reason="concurrent_change",
                        details={"enrollment_id": enrollment.id},
                    )
                self.batch_repository.decrement_enrolled(current.id)

        self.logger.info(
            f"Enrollment {enrollment_id} switched from batch {current.id} to {target.id}"
        )
        return EnrollmentSnapshot.from_model(self.get_enrollment(enrollment_id))

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def is_monthly(self, enrollment: Enrollment) -> bool:
        """Class enrollments and monthly-tier passes are monthly passes."""
        return enrollment.is_class or enrollment.tier == PassTier.MONTHLY.value

    def cancellation_days_remaining(self, enrollment: Enrollment) -> int:
        """Days left in the lock window; 0 when cancellation is allowed."""
        if not self.is_monthly(enrollment):
            return 0
        days_since_start = (self._today(enrollment) - enrollment.start_date).days
        return max(0, self.config.monthly_lock_days - days_since_start)

    def _check_cancellable(self, enrollment: Enrollment) -> None:
        self._require_active(enrollment)
        days_remaining = self.cancellation_days_remaining(enrollment)
        if days_remaining > 0:
            self.logger.info(
                f"Cancellation of {enrollment.id} blocked: {days_remaining} days remaining"
            )
            raise LockedException(days_remaining, self.config.monthly_lock_days)

    def _end_enrollment(
        self, enrollment: Enrollment, status: EnrollmentStatus, **fields
    ) -> bool:
        """
        Flip an active enrollment to ``status`` and free its seat.

        Only the request whose UPDATE matched the active row releases the
        seat; the rest get False and change nothing.
        """
        batch_id = enrollment.batch_id
        if not self.enrollment_repository.end_if_active(enrollment.id, status, batch_id, **fields):
            return False
        if batch_id:
            self.batch_repository.decrement_enrolled(batch_id)
        return True

    @BaseService.measure_operation("cancel_enrollment")
    def cancel_enrollment(self, enrollment_id: str) -> EnrollmentSnapshot:
        """
        Cancel an enrollment and free its seat.

        Raises LockedException (with days remaining) inside the monthly lock
        window.
        """
        enrollment = self.get_enrollment(enrollment_id)
        self._check_cancellable(enrollment)

        keys = [offering_key(enrollment.batch_id)] if enrollment.is_class else []
        with lock_registry.hold_many(keys):
            self.db.expire_all()
            enrollment = self.get_enrollment(enrollment_id)
            self._check_cancellable(enrollment)
            if enrollment.is_class and offering_key(enrollment.batch_id) not in keys:
                raise BusinessRuleException(
                    "Enrollment moved to another batch; retry the cancellation",
                    code="ENROLLMENT_CHANGED",
                    details={"enrollment_id": enrollment.id},
                )
            with self.transaction():
                ended = self._end_enrollment(
                    enrollment,
                    EnrollmentStatus.CANCELLED,
                    cancelled_at=self.now(),
                    auto_renew=False,
                )
                if not ended:
                    raise BusinessRuleException(
                        "Enrollment is no longer active",
                        code="ENROLLMENT_NOT_ACTIVE",
                        details={"enrollment_id": enrollment.id},
                    )

        self.logger.info(f"Enrollment {enrollment_id} cancelled")
        return EnrollmentSnapshot.from_model(self.get_enrollment(enrollment_id))

    # ------------------------------------------------------------------
    # Auto-renew
    # ------------------------------------------------------------------

    @BaseService.measure_operation("set_auto_renew")
    def set_auto_renew(self, enrollment_id: str, auto_renew: bool) -> EnrollmentSnapshot:
        enrollment = self.get_enrollment(enrollment_id)
        self._require_active(enrollment)
        with self.transaction():
            enrollment.auto_renew = auto_renew
        return EnrollmentSnapshot.from_model(enrollment)

    def toggle_auto_renew(self, enrollment_id: str) -> EnrollmentSnapshot:
        enrollment = self.get_enrollment(enrollment_id)
        return self.set_auto_renew(enrollment_id, not enrollment.auto_renew)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    @BaseService.measure_operation("expire_enrollments")
    def expire_enrollments(self) -> int:
        """Mark enrollments past their end date as expired, freeing seats."""
        # Widest possible local date; each row is re-checked in its own timezone
        horizon = self.now().date() + timedelta(days=1)
        expired = 0
        for enrollment in self.enrollment_repository.get_expired_active(horizon):
            if enrollment.end_date >= self._today(enrollment):
                continue
            keys = [offering_key(enrollment.batch_id)] if enrollment.is_class else []
            with lock_registry.hold_many(keys):
                with self.transaction():
                    ended = self._end_enrollment(
                        enrollment, EnrollmentStatus.EXPIRED, expired_at=self.now()
                    )
            if ended:
                expired += 1
        if expired:
            self.logger.info(f"Expired {expired} enrollments")
        return expired
