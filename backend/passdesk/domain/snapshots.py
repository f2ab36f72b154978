"""Immutable read models returned by engine queries."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ReservationItemSnapshot:
    id: str
    position: int
    business_id: str
    title: str
    start_date: date
    price: Decimal
    auto_renew: bool
    batch_id: Optional[str] = None
    pass_template_id: Optional[str] = None

    @classmethod
    def from_model(cls, item) -> "ReservationItemSnapshot":
        return cls(
            id=item.id,
            position=item.position,
            business_id=item.business_id,
            title=item.title,
            start_date=item.start_date,
            price=Decimal(item.price or 0),
            auto_renew=bool(item.auto_renew),
            batch_id=item.batch_id,
            pass_template_id=item.pass_template_id,
        )


@dataclass(frozen=True)
class ReservationSnapshot:
    student_id: str
    items: Tuple[ReservationItemSnapshot, ...] = ()
    expires_at: Optional[datetime] = None
    remaining_seconds: int = 0
    is_expired: bool = False

    @property
    def total(self) -> Decimal:
        return sum((item.price for item in self.items), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class BatchSnapshot:
    id: str
    business_id: str
    name: str
    subject: str
    teacher_name: str
    schedule_pattern: str
    start_time: str
    end_time: str
    capacity: int
    enrolled_count: int
    status: str
    valid_from: date
    valid_until: date
    price: Decimal
    notes: Tuple[str, ...] = ()

    @classmethod
    def from_model(cls, batch, notes: Tuple[str, ...] = ()) -> "BatchSnapshot":
        return cls(
            id=batch.id,
            business_id=batch.business_id,
            name=batch.name,
            subject=batch.subject,
            teacher_name=batch.teacher_name,
            schedule_pattern=batch.schedule_pattern,
            start_time=batch.start_time,
            end_time=batch.end_time,
            capacity=batch.capacity,
            enrolled_count=batch.enrolled_count,
            status=batch.status,
            valid_from=batch.valid_from,
            valid_until=batch.valid_until,
            price=Decimal(batch.price or 0),
            notes=tuple(notes),
        )


@dataclass(frozen=True)
class EnrollmentSnapshot:
    id: str
    student_id: str
    business_id: str
    title: str
    status: str
    start_date: date
    end_date: date
    total_operating_days: int
    auto_renew: bool
    switch_used: bool
    batch_id: Optional[str] = None
    pass_template_id: Optional[str] = None
    tier: Optional[str] = None

    @classmethod
    def from_model(cls, enrollment) -> "EnrollmentSnapshot":
        return cls(
            id=enrollment.id,
            student_id=enrollment.student_id,
            business_id=enrollment.business_id,
            title=enrollment.title,
            status=enrollment.status,
            start_date=enrollment.start_date,
            end_date=enrollment.end_date,
            total_operating_days=enrollment.total_operating_days,
            auto_renew=bool(enrollment.auto_renew),
            switch_used=bool(enrollment.switch_used),
            batch_id=enrollment.batch_id,
            pass_template_id=enrollment.pass_template_id,
            tier=enrollment.tier,
        )


@dataclass(frozen=True)
class TransactionReceipt:
    id: str
    order_id: str
    student_id: str
    total_amount: Decimal
    currency: str
    created_at: datetime
    line_items: Tuple[Dict[str, Any], ...] = ()
    enrollments: Tuple[EnrollmentSnapshot, ...] = field(default_factory=tuple)

    @property
    def enrollment_ids(self) -> Tuple[str, ...]:
        return tuple(e.id for e in self.enrollments)
