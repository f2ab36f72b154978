# backend/passdesk/services/batch_service.py
"""
Batch Service for PassDesk

Business-side batch management. Every create or edit runs the teacher
double-booking check under a per-teacher lock, so two accepted batches for
one teacher never overlap.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import lock_registry, teacher_key
from ..core.enums import BatchStatus
from ..core.exceptions import BusinessRuleException, NotFoundException, ValidationException
from ..core.timezone_utils import local_today
from ..domain.conflicts import ensure_compatible
from ..domain.operating_calendar import add_months
from ..domain.overlap import TimeSlot
from ..domain.schedule_patterns import require_pattern
from ..domain.snapshots import BatchSnapshot
from ..models.batch import Batch, normalize_teacher_name
from ..models.business import Business
from ..repositories import RepositoryFactory
from .base import BaseService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSpec:
    """Fields a business submits to create or edit a batch."""

    name: str
    subject: str
    teacher_name: str
    schedule_pattern: str
    start_time: str
    end_time: str
    capacity: int
    valid_from: date
    duration_months: int = 1
    price: Decimal = Decimal("0")
    batch_id: Optional[str] = None


def status_for_dates(valid_from: date, valid_until: date, today: date) -> BatchStatus:
    if today > valid_until:
        return BatchStatus.COMPLETED
    if valid_from <= today:
        return BatchStatus.ACTIVE
    return BatchStatus.SCHEDULED


class BatchService(BaseService):
    def __init__(self, db: Session, conflict_checker: Optional[ConflictChecker] = None, clock=None):
        super().__init__(db, clock)
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=self.clock)
        self.batch_repository = RepositoryFactory.create_batch_repository(db)
        self.business_repository = RepositoryFactory.create_business_repository(db)

    def get_business(self, business_id: str) -> Business:
        business = self.business_repository.get_by_id(business_id)
        if business is None:
            raise NotFoundException(f"Business {business_id} not found", code="BUSINESS_NOT_FOUND")
        return business

    def list_batches(self, business_id: str, include_closed: bool = False) -> List[BatchSnapshot]:
        self.get_business(business_id)
        return [
            BatchSnapshot.from_model(b)
            for b in self.batch_repository.get_for_business(business_id, include_closed)
        ]

    @staticmethod
    def _validate(spec: BatchSpec) -> TimeSlot:
        for field_name in ("name", "subject", "teacher_name"):
            if not (getattr(spec, field_name) or "").strip():
                raise ValidationException(
                    f"{field_name.replace('_', ' ').capitalize()} is required",
                    code="INVALID_BATCH",
                    details={"field": field_name},
                )
        require_pattern(spec.schedule_pattern)
        slot = TimeSlot.from_schedule(spec.schedule_pattern, spec.start_time, spec.end_time)
        if not isinstance(spec.capacity, int) or isinstance(spec.capacity, bool) or spec.capacity <= 0:
            raise ValidationException(
                "Capacity must be a positive whole number",
                code="INVALID_CAPACITY",
                details={"capacity": spec.capacity},
            )
        if spec.duration_months <= 0:
            raise ValidationException(
                "Duration must be at least one month", code="INVALID_BATCH"
            )
        if Decimal(spec.price) < 0:
            raise ValidationException("Price cannot be negative", code="INVALID_BATCH")
        return slot

    @BaseService.measure_operation("create_or_edit_batch")
    def create_or_edit_batch(self, business_id: str, spec: BatchSpec) -> BatchSnapshot:
        """
        Create a batch, or edit one when ``spec.batch_id`` is set.

        Raises TeacherConflictException when the teacher already teaches an
        overlapping scheduled/active batch at this business.
        """
        business = self.get_business(business_id)
        slot = self._validate(spec)

        existing: Optional[Batch] = None
        if spec.batch_id:
            existing = self.batch_repository.get_by_id(spec.batch_id)
            if existing is None or existing.business_id != business_id:
                raise NotFoundException(f"Batch {spec.batch_id} not found", code="BATCH_NOT_FOUND")
            if not existing.is_open:
                raise BusinessRuleException(
                    f"A {existing.status} batch cannot be edited",
                    code="BATCH_NOT_EDITABLE",
                    details={"batch_id": existing.id, "status": existing.status},
                )

        keys = [teacher_key(business_id, spec.teacher_name)]
        if existing is not None:
            keys.append(teacher_key(business_id, existing.teacher_name))

        with lock_registry.hold_many(keys):
            if existing is not None:
                self.db.refresh(existing)
                if spec.capacity < existing.enrolled_count:
                    raise ValidationException(
                        f"Capacity cannot be below the {existing.enrolled_count} students enrolled",
                        code="INVALID_CAPACITY",
                        details={
                            "capacity": spec.capacity,
                            "enrolled_count": existing.enrolled_count,
                        },
                    )

            result = ensure_compatible(
                self.conflict_checker.check_teacher_conflict(
                    business_id,
                    spec.teacher_name,
                    slot,
                    exclude_batch_id=existing.id if existing is not None else None,
                )
            )

            valid_until = add_months(spec.valid_from, spec.duration_months)
            status = status_for_dates(
                spec.valid_from, valid_until, local_today(self.now(), business.timezone)
            )
            fields = dict(
                name=spec.name.strip(),
                subject=spec.subject.strip(),
                teacher_name=" ".join(spec.teacher_name.split()),
                teacher_key=normalize_teacher_name(spec.teacher_name),
                schedule_pattern=require_pattern(spec.schedule_pattern),
                start_time=spec.start_time.strip(),
                end_time=spec.end_time.strip(),
                capacity=spec.capacity,
                price=Decimal(spec.price),
                valid_from=spec.valid_from,
                duration_months=spec.duration_months,
                valid_until=valid_until,
                status=status.value,
            )
            with self.transaction():
                if existing is None:
                    batch = self.batch_repository.create(business_id=business_id, **fields)
                else:
                    batch = self.batch_repository.update(existing.id, **fields)

        action = "Updated" if existing is not None else "Created"
        self.logger.info(
            f"{action} batch {batch.id} for teacher {batch.teacher_name!r} "
            f"({batch.schedule_pattern} {batch.start_time}-{batch.end_time})"
        )
        return BatchSnapshot.from_model(batch, notes=result.notes)

    @BaseService.measure_operation("cancel_batch")
    def cancel_batch(self, batch_id: str, business_id: Optional[str] = None) -> BatchSnapshot:
        """Cancellation is terminal and only allowed from scheduled/active."""
        batch = self.conflict_checker.get_batch(batch_id)
        if business_id is not None and batch.business_id != business_id:
            raise NotFoundException(f"Batch {batch_id} not found", code="BATCH_NOT_FOUND")
        if not batch.is_open:
            raise BusinessRuleException(
                f"A {batch.status} batch cannot be cancelled",
                code="BATCH_NOT_CANCELLABLE",
                details={"batch_id": batch.id, "status": batch.status},
            )
        with self.transaction():
            batch.status = BatchStatus.CANCELLED.value
            batch.cancelled_at = self.now()
        self.logger.info(f"Batch {batch_id} cancelled")
        return BatchSnapshot.from_model(batch)

    @BaseService.measure_operation("refresh_batch_statuses")
    def refresh_statuses(self, batches: Optional[Iterable[Batch]] = None) -> int:
        """Move batches along scheduled -> active -> completed by date."""
        changed = 0
        with self.transaction():
            for batch in batches if batches is not None else self.batch_repository.get_open_batches():
                if not batch.is_open:
                    continue
                today = local_today(self.now(), batch.business.timezone)
                status = status_for_dates(batch.valid_from, batch.valid_until, today)
                if status.value != batch.status:
                    self.logger.info(f"Batch {batch.id}: {batch.status} -> {status.value}")
                    batch.status = status.value
                    changed += 1
        return changed
