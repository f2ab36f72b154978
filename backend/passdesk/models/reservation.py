# backend/passdesk/models/reservation.py
"""
Reservation models.

A reservation is one student's not-yet-paid selection. All of its items
share a single expiry timestamp; the timer starts with the first item and
is not reset by later additions.
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

from ..database import Base


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(64), nullable=False, unique=True, index=True)

    expires_at = Column(DateTime(timezone=True), nullable=True)
    # Set when an expired reservation is evicted; cleared once the student
    # has been told (the next mutation or checkout raises)
    lapsed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship(
        "ReservationItem",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationItem.position",
    )

    @property
    def is_empty(self) -> bool:
        return not self.items

    def __repr__(self) -> str:
        return f"<Reservation {self.student_id} items={len(self.items)} expires={self.expires_at}>"


class ReservationItem(Base):
    __tablename__ = "reservation_items"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    reservation_id = Column(
        String(26), ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)

    business_id = Column(String(26), ForeignKey("businesses.id"), nullable=False)
    batch_id = Column(String(26), ForeignKey("batches.id"), nullable=True, index=True)
    pass_template_id = Column(String(26), ForeignKey("pass_templates.id"), nullable=True)

    title = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    auto_renew = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    reservation = relationship("Reservation", back_populates="items")
    batch = relationship("Batch")
    pass_template = relationship("PassTemplate")
    business = relationship("Business")

    __table_args__ = (
        CheckConstraint(
            "(batch_id IS NOT NULL) <> (pass_template_id IS NOT NULL)",
            name="ck_reservation_items_one_offering",
        ),
    )

    @property
    def is_class(self) -> bool:
        return self.batch_id is not None
