# backend/passdesk/models/enrollment.py
"""
Enrollment model.

An enrollment is the durable result of checkout: a student's seat in a
batch, or a non-class pass at a business. Class enrollments hold a seat in
``Batch.enrolled_count`` for as long as they are active.
"""

from sqlalchemy import (
    Boolean,
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

from ..core.enums import EnrollmentStatus
from ..database import Base


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(64), nullable=False, index=True)
    business_id = Column(String(26), ForeignKey("businesses.id"), nullable=False, index=True)

    # Exactly one of these is set
    batch_id = Column(String(26), ForeignKey("batches.id"), nullable=True, index=True)
    pass_template_id = Column(String(26), ForeignKey("pass_templates.id"), nullable=True)

    # Snapshot taken at checkout
    title = Column(String(255), nullable=False)
    subject = Column(String(120), nullable=True)
    time_segment = Column(String(80), nullable=True)
    tier = Column(String(20), nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_operating_days = Column(Integer, nullable=False)

    auto_renew = Column(Boolean, nullable=False, default=False)
    switch_used = Column(Boolean, nullable=False, default=False)
    switched_at = Column(DateTime(timezone=True), nullable=True)
    switched_from_batch_id = Column(String(26), nullable=True)

    transaction_id = Column(String(26), ForeignKey("transactions.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)

    batch = relationship("Batch")
    pass_template = relationship("PassTemplate")
    business = relationship("Business")
    transaction = relationship("Transaction", back_populates="enrollments")

    __table_args__ = (
        CheckConstraint(
            "(batch_id IS NOT NULL) <> (pass_template_id IS NOT NULL)",
            name="ck_enrollments_one_offering",
        ),
        CheckConstraint("end_date >= start_date", name="ck_enrollments_dates"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE.value

    @property
    def is_class(self) -> bool:
        return self.batch_id is not None

    def __repr__(self) -> str:
        target = self.batch_id or self.pass_template_id
        return f"<Enrollment {self.id} student={self.student_id} {target} {self.status}>"
