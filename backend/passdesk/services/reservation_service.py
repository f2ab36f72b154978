# backend/passdesk/services/reservation_service.py
"""
Reservation Service for PassDesk

Manages a student's provisional selections:
- add / remove / clear items
- one expiry timer shared by the whole reservation, started by the first
  item and never reset by later additions
- lazy eviction of expired reservations plus a periodic sweep

Eviction (lazy or swept) clears the items and stamps ``lapsed_at``. The
next mutation or checkout sees the stamp, clears it and raises
ReservationExpiredException, so both paths look the same to the student.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..core.booking_lock import lock_registry
from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ReservationExpiredException,
    ValidationException,
)
from ..core.timezone_utils import local_today
from ..domain.candidate import BookingCandidate
from ..domain.conflicts import Compatible, ConflictResult, ensure_compatible
from ..domain.snapshots import ReservationItemSnapshot, ReservationSnapshot
from ..domain.timer import expiry_from, is_expired, remaining_seconds
from ..models.batch import Batch
from ..models.business import Business
from ..models.pass_template import PassTemplate
from ..models.reservation import Reservation, ReservationItem
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)


def reservation_key(student_id: str) -> str:
    return f"reservation:{student_id}:mutex"


@dataclass(frozen=True)
class AddResult:
    item: ReservationItemSnapshot
    result: Compatible
    expires_at: datetime


class ReservationService(BaseService):
    """Service for a student's time-boxed reservation."""

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
        self.repository = RepositoryFactory.create_reservation_repository(db)
        self.business_repository = RepositoryFactory.create_business_repository(db)

    # ------------------------------------------------------------------
    # Expiry handling
    # ------------------------------------------------------------------

    def _evict_if_expired(self, reservation: Reservation) -> bool:
        """Clear an expired reservation in the session. Caller commits."""
        if not is_expired(reservation.expires_at, self.now()):
            return False
        expired_at = reservation.expires_at
        removed = self.repository.clear_items(reservation)
        reservation.lapsed_at = expired_at
        self.logger.info(
            f"Reservation for {reservation.student_id} expired at {expired_at}; "
            f"evicted {removed} items"
        )
        prometheus_metrics.record_reservation_event("expire", "evicted")
        return True

    def assert_live(self, reservation: Optional[Reservation]) -> None:
        """
        Raise ReservationExpiredException if the reservation has lapsed.

        The eviction and the cleared ``lapsed_at`` flag are committed before
        raising, so the student is told exactly once.
        """
        if reservation is None:
            return
        self._evict_if_expired(reservation)
        if reservation.lapsed_at is None:
            return
        expired_at = reservation.lapsed_at
        with self.transaction():
            reservation.lapsed_at = None
        raise ReservationExpiredException(
            reservation.student_id, expired_at.isoformat() if expired_at else None
        )

    def _live_items(self, reservation: Optional[Reservation]) -> Tuple[ReservationItem, ...]:
        """Items that still count, without mutating anything."""
        if reservation is None or is_expired(reservation.expires_at, self.now()):
            return ()
        return tuple(reservation.items)

    # ------------------------------------------------------------------
    # Candidate resolution
    # ------------------------------------------------------------------

    def _resolve(
        self, candidate: BookingCandidate
    ) -> Tuple[Union[Batch, PassTemplate], Business, date]:
        if candidate.is_class:
            offering = self.conflict_checker.get_batch(candidate.batch_id)
            if not offering.is_open:
                raise BusinessRuleException(
                    f"Batch {offering.name} is {offering.status} and cannot be booked",
                    code="BATCH_NOT_OPEN",
                    details={"batch_id": offering.id, "status": offering.status},
                )
        else:
            offering = self.conflict_checker.get_pass_template(candidate.pass_template_id)

        business = offering.business
        today = local_today(self.now(), business.timezone)
        start_date = candidate.start_date
        if start_date is None:
            start_date = max(today, offering.valid_from) if candidate.is_class else today
        self._validate_start_date(start_date, today, offering if candidate.is_class else None)
        return offering, business, start_date

    def _validate_start_date(self, start_date: date, today: date, batch: Optional[Batch]) -> None:
        latest = today + timedelta(days=self.config.advance_booking_days)
        if start_date < today:
            raise ValidationException(
                "Start date cannot be in the past",
                code="INVALID_START_DATE",
                details={"start_date": start_date.isoformat(), "today": today.isoformat()},
            )
        if start_date > latest:
            raise ValidationException(
                f"Start date must be within {self.config.advance_booking_days} days",
                code="INVALID_START_DATE",
                details={"start_date": start_date.isoformat(), "latest": latest.isoformat()},
            )
        if batch is not None and start_date > batch.valid_until:
            raise ValidationException(
                "Start date is after the batch ends",
                code="INVALID_START_DATE",
                details={
                    "start_date": start_date.isoformat(),
                    "valid_until": batch.valid_until.isoformat(),
                },
            )

    @staticmethod
    def _title(offering: Union[Batch, PassTemplate], business: Business) -> str:
        if isinstance(offering, Batch):
            return f"{offering.subject} - {offering.name} @ {business.name}"
        return f"{offering.display_label} Pass @ {business.name}"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @BaseService.measure_operation("check_add")
    def check_add(self, student_id: str, candidate: BookingCandidate) -> ConflictResult:
        """Would ``candidate`` be accepted? Read-only."""
        self._resolve(candidate)
        reservation = self.repository.get_for_student(student_id)
        return self.conflict_checker.check_candidate(
            student_id, candidate, self._live_items(reservation)
        )

    def remaining_seconds(self, student_id: str) -> int:
        reservation = self.repository.get_for_student(student_id)
        if reservation is None or reservation.is_empty:
            return 0
        return remaining_seconds(reservation.expires_at, self.now())

    def snapshot(self, student_id: str) -> ReservationSnapshot:
        reservation = self.repository.get_for_student(student_id)
        if reservation is None:
            return ReservationSnapshot(student_id=student_id)
        now = self.now()
        expired = is_expired(reservation.expires_at, now) or reservation.lapsed_at is not None
        items = () if expired else tuple(
            ReservationItemSnapshot.from_model(item) for item in reservation.items
        )
        return ReservationSnapshot(
            student_id=student_id,
            items=items,
            expires_at=None if expired else reservation.expires_at,
            remaining_seconds=0 if expired else remaining_seconds(reservation.expires_at, now),
            is_expired=expired,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("add_to_reservation")
    def add(self, student_id: str, candidate: BookingCandidate) -> AddResult:
        """
        Add a candidate to the student's reservation.

        Raises CapacityException, AlreadyReservedException or
        ScheduleConflictException when rejected. The first item starts
        the shared timer.
        """
        with lock_registry.hold(reservation_key(student_id)):
            reservation = self.repository.get_for_student(student_id)
            self.assert_live(reservation)

            offering, business, start_date = self._resolve(candidate)
            items = tuple(reservation.items) if reservation else ()
            result = self.conflict_checker.check_candidate(student_id, candidate, items)
            if result.has_conflict:
                prometheus_metrics.record_reservation_event("add", result.kind)
            compatible = ensure_compatible(result)

            with self.transaction():
                if reservation is None:
                    reservation = self.repository.get_or_create(student_id)
                if reservation.is_empty or reservation.expires_at is None:
                    reservation.expires_at = expiry_from(
                        self.now(), self.config.reservation_window_minutes
                    )
                item = self.repository.add_item(
                    reservation,
                    business_id=business.id,
                    batch_id=candidate.batch_id,
                    pass_template_id=candidate.pass_template_id,
                    title=self._title(offering, business),
                    start_date=start_date,
                    price=offering.price,
                    auto_renew=candidate.auto_renew,
                )

        prometheus_metrics.record_reservation_event("add", "accepted")
        self.logger.info(
            f"Added {candidate.offering_id} to reservation of {student_id} "
            f"(expires {reservation.expires_at})"
        )
        return AddResult(
            item=ReservationItemSnapshot.from_model(item),
            result=compatible,
            expires_at=reservation.expires_at,
        )

    def _get_live_reservation(self, student_id: str) -> Reservation:
        reservation = self.repository.get_for_student(student_id)
        self.assert_live(reservation)
        if reservation is None:
            raise NotFoundException("No active reservation", code="RESERVATION_NOT_FOUND")
        return reservation

    @staticmethod
    def _get_item(reservation: Reservation, item_id: str) -> ReservationItem:
        item = next((i for i in reservation.items if i.id == item_id), None)
        if item is None:
            raise NotFoundException(
                f"Reservation item {item_id} not found", code="RESERVATION_ITEM_NOT_FOUND"
            )
        return item

    @BaseService.measure_operation("remove_from_reservation")
    def remove(self, student_id: str, item_id: str) -> None:
        with lock_registry.hold(reservation_key(student_id)):
            reservation = self._get_live_reservation(student_id)
            self._get_item(reservation, item_id)
            with self.transaction():
                self.repository.remove_item(reservation, item_id)
                if reservation.is_empty:
                    reservation.expires_at = None
        prometheus_metrics.record_reservation_event("remove", "accepted")

    @BaseService.measure_operation("clear_reservation")
    def clear(self, student_id: str) -> int:
        """Empty the reservation. Never raises for an expired reservation."""
        with lock_registry.hold(reservation_key(student_id)):
            reservation = self.repository.get_for_student(student_id)
            if reservation is None:
                return 0
            with self.transaction():
                removed = self.repository.clear_items(reservation)
                reservation.lapsed_at = None
        return removed

    @BaseService.measure_operation("extend_reservation")
    def extend_timer(self, student_id: str) -> datetime:
        """Restart the shared window for a live, non-empty reservation."""
        with lock_registry.hold(reservation_key(student_id)):
            reservation = self._get_live_reservation(student_id)
            if reservation.is_empty:
                raise BusinessRuleException(
                    "Nothing to extend: the reservation is empty", code="RESERVATION_EMPTY"
                )
            with self.transaction():
                reservation.expires_at = expiry_from(
                    self.now(), self.config.reservation_window_minutes
                )
        return reservation.expires_at

    def update_item_start_date(self, student_id: str, item_id: str, start_date: date) -> ReservationItemSnapshot:
        with lock_registry.hold(reservation_key(student_id)):
            reservation = self._get_live_reservation(student_id)
            item = self._get_item(reservation, item_id)
            today = local_today(self.now(), item.business.timezone)
            self._validate_start_date(start_date, today, item.batch)
            with self.transaction():
                item.start_date = start_date
        return ReservationItemSnapshot.from_model(item)

    def update_item_auto_renew(self, student_id: str, item_id: str, auto_renew: bool) -> ReservationItemSnapshot:
        with lock_registry.hold(reservation_key(student_id)):
            reservation = self._get_live_reservation(student_id)
            item = self._get_item(reservation, item_id)
            with self.transaction():
                item.auto_renew = auto_renew
        return ReservationItemSnapshot.from_model(item)

    @BaseService.measure_operation("sweep_expired_reservations")
    def sweep_expired(self) -> int:
        """Evict every expired reservation. Returns how many were evicted."""
        now = self.now()
        evicted = 0
        for reservation in self.repository.get_expired(now):
            with lock_registry.hold(reservation_key(reservation.student_id)):
                with self.transaction():
                    if self._evict_if_expired(reservation):
                        evicted += 1
        if evicted:
            self.logger.info(f"Swept {evicted} expired reservations")
        return evicted
