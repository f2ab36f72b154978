# backend/passdesk/services/checkout_service.py
"""
Checkout Service for PassDesk

Turns a live, conflict-free reservation into enrollments and one
transaction record, atomically:
1. Reject empty or expired reservations
2. Take the offering locks for every item, then re-check expiry
3. Re-run the full conflict check across the reservation
4. In one database transaction: take a seat per batch, create the
   enrollments, record the transaction, clear the reservation

Any failure in step 4 rolls back every seat and row written so far.
"""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import lock_registry, offering_key, pass_key
from ..core.config import Settings, settings as default_settings
from ..core.enums import EnrollmentStatus
from ..core.exceptions import (
    BusinessRuleException,
    CapacityException,
    DomainException,
    ReservationExpiredException,
    ServiceException,
)
from ..core.ulid_helper import generate_order_id, generate_ulid
from ..domain.candidate import ContactInfo
from ..domain.conflicts import CapacityFull, ensure_compatible
from ..domain.operating_calendar import operating_end_date
from ..domain.snapshots import EnrollmentSnapshot, TransactionReceipt
from ..models.reservation import Reservation, ReservationItem
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker
from .reservation_service import ReservationService, reservation_key

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


class CheckoutService(BaseService):
    """Atomic conversion of a reservation into enrollments."""

    def __init__(
        self,
        db: Session,
        reservation_service: Optional[ReservationService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        config: Optional[Settings] = None,
        clock=None,
    ):
        super().__init__(db, clock)
        self.config = config or default_settings
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=self.clock)
        self.reservation_service = reservation_service or ReservationService(
            db, conflict_checker=self.conflict_checker, config=self.config, clock=self.clock
        )
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.batch_repository = RepositoryFactory.create_batch_repository(db)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)

    @staticmethod
    def _lock_keys(student_id: str, items: List[ReservationItem]) -> List[str]:
        keys = [reservation_key(student_id)]
        for item in items:
            keys.append(offering_key(item.batch_id) if item.is_class else pass_key(item.business_id))
        return keys

    def _require_items(self, reservation: Optional[Reservation]) -> List[ReservationItem]:
        if reservation is None or reservation.is_empty:
            raise BusinessRuleException("Your reservation is empty", code="RESERVATION_EMPTY")
        return list(reservation.items)

    @BaseService.measure_operation("checkout")
    def checkout(self, student_id: str, contact: ContactInfo) -> TransactionReceipt:
        """
        Check out the student's reservation.

        Raises:
            ReservationExpiredException: the shared timer has elapsed
            BusinessRuleException: the reservation is empty
            ScheduleConflictException / AlreadyReservedException /
            CapacityException: re-validation failed
            ServiceException: persistence failed; nothing was written
        """
        try:
            reservation = self.reservation_repository.get_for_student(student_id)
            self.reservation_service.assert_live(reservation)
            items = self._require_items(reservation)

            with lock_registry.hold_many(self._lock_keys(student_id, items)):
                # Counters and the timer may have moved while we waited
                self.db.expire_all()
                reservation = self.reservation_repository.get_for_student(student_id)
                self.reservation_service.assert_live(reservation)
                items = self._require_items(reservation)

                ensure_compatible(self.conflict_checker.check_reservation(student_id, items))

                with self.transaction():
                    receipt = self._persist(student_id, contact, reservation, items)
        except ReservationExpiredException:
            prometheus_metrics.record_checkout("expired")
            raise
        except ServiceException:
            prometheus_metrics.record_checkout("error")
            self.logger.error(f"Checkout for {student_id} rolled back after a persistence failure")
            raise
        except DomainException:
            prometheus_metrics.record_checkout("rejected")
            raise

        prometheus_metrics.record_checkout("success", float(receipt.total_amount))
        self.logger.info(
            f"Checkout {receipt.order_id} for {student_id}: {len(receipt.enrollments)} "
            f"enrollments, total {receipt.total_amount} {receipt.currency}"
        )
        return receipt

    def _persist(
        self,
        student_id: str,
        contact: ContactInfo,
        reservation: Reservation,
        items: List[ReservationItem],
    ) -> TransactionReceipt:
        now = self.now()
        transaction_id = generate_ulid()
        total = Decimal("0")
        lines: List[Dict[str, Any]] = []
        pending: List[Dict[str, Any]] = []

        for item in items:
            business = item.business
            price = Decimal(item.price or 0).quantize(TWO_PLACES)
            if item.is_class:
                batch = item.batch
                if not batch.is_open:
                    raise BusinessRuleException(
                        f"Batch {batch.name} is {batch.status} and cannot be booked",
                        code="BATCH_NOT_OPEN",
                        details={"batch_id": batch.id, "status": batch.status},
                    )
                if not self.batch_repository.increment_enrolled(batch.id):
                    raise CapacityException(
                        CapacityFull(
                            batch_id=batch.id,
                            capacity=batch.capacity,
                            enrolled_count=batch.enrolled_count,
                            message=f"{batch.display_label} is full ({batch.capacity} seats)",
                        )
                    )
                operating_days = self.config.class_pass_operating_days
                extra = {"subject": batch.subject, "tier": None, "time_segment": None}
            else:
                template = item.pass_template
                operating_days = self.config.operating_days_for_tier(template.tier)
                extra = {"subject": None, "tier": template.tier, "time_segment": template.time_segment}

            enrollment_id = generate_ulid()
            end_date = operating_end_date(item.start_date, business.operating_weekdays, operating_days)
            pending.append(
                dict(
                    id=enrollment_id,
                    student_id=student_id,
                    business_id=item.business_id,
                    batch_id=item.batch_id,
                    pass_template_id=item.pass_template_id,
                    title=item.title,
                    price=price,
                    status=EnrollmentStatus.ACTIVE.value,
                    start_date=item.start_date,
                    end_date=end_date,
                    total_operating_days=operating_days,
                    auto_renew=bool(item.auto_renew),
                    switch_used=False,
                    transaction_id=transaction_id,
                    **extra,
                )
            )
            lines.append(
                {
                    "description": item.title,
                    "amount": str(price),
                    "enrollment_id": enrollment_id,
                    "batch_id": item.batch_id,
                    "pass_template_id": item.pass_template_id,
                    "start_date": item.start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                }
            )
            total += price

        transaction = self.transaction_repository.create(
            id=transaction_id,
            order_id=generate_order_id(),
            student_id=student_id,
            contact_name=contact.name.strip(),
            contact_phone=contact.phone,
            contact_email=contact.email,
            total_amount=total,
            currency=self.config.currency,
            line_items=lines,
            created_at=now,
        )
        enrollments = [self.enrollment_repository.create(**fields) for fields in pending]
        self.reservation_repository.clear_items(reservation)
        reservation.lapsed_at = None

        return TransactionReceipt(
            id=transaction.id,
            order_id=transaction.order_id,
            student_id=student_id,
            total_amount=total,
            currency=transaction.currency,
            created_at=now,
            line_items=tuple(lines),
            enrollments=tuple(EnrollmentSnapshot.from_model(e) for e in enrollments),
        )
