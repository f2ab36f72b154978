# backend/passdesk/models/batch.py
"""
Batch model.

A batch is a recurring class slot: one teacher, a weekly pattern, a
start/end time and a seat capacity. ``enrolled_count`` is the live seat
counter and is only changed by checkout, switch, cancellation and expiry.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BatchStatus
from ..database import Base
from ..domain.overlap import TimeSlot
from ..domain.schedule_patterns import pattern_label


def normalize_teacher_name(name: str) -> str:
    return " ".join((name or "").strip().lower().split())


class Batch(Base):
    __tablename__ = "batches"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    business_id = Column(String(26), ForeignKey("businesses.id"), nullable=False, index=True)

    name = Column(String(120), nullable=False)
    subject = Column(String(120), nullable=False)
    teacher_name = Column(String(120), nullable=False)
    teacher_key = Column(String(120), nullable=False, index=True)

    # Weekly schedule
    schedule_pattern = Column(String(20), nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM

    capacity = Column(Integer, nullable=False)
    enrolled_count = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=BatchStatus.SCHEDULED.value, index=True)
    valid_from = Column(Date, nullable=False)
    duration_months = Column(Integer, nullable=False, default=1)
    valid_until = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    business = relationship("Business", back_populates="batches")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_batches_capacity_positive"),
        CheckConstraint("enrolled_count >= 0", name="ck_batches_enrolled_non_negative"),
        CheckConstraint("enrolled_count <= capacity", name="ck_batches_enrolled_within_capacity"),
        CheckConstraint("duration_months > 0", name="ck_batches_duration_positive"),
    )

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot.from_schedule(self.schedule_pattern, self.start_time, self.end_time)

    @property
    def seats_left(self) -> int:
        return max(0, self.capacity - (self.enrolled_count or 0))

    @property
    def is_full(self) -> bool:
        return self.seats_left == 0

    @property
    def is_open(self) -> bool:
        return BatchStatus(self.status).is_open

    @property
    def display_label(self) -> str:
        return (
            f"{self.subject} - {self.name} ({pattern_label(self.schedule_pattern)} "
            f"{self.start_time}-{self.end_time})"
        )

    def __repr__(self) -> str:
        return (
            f"<Batch {self.id} {self.subject}/{self.name} teacher={self.teacher_name!r} "
            f"{self.schedule_pattern} {self.start_time}-{self.end_time} "
            f"{self.enrolled_count}/{self.capacity} {self.status}>"
        )
