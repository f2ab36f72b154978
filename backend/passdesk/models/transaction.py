# backend/passdesk/models/transaction.py
"""Checkout transactions. Append-only: rows are never updated or deleted."""

from sqlalchemy import JSON, Column, DateTime, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    order_id = Column(String(20), nullable=False, unique=True, index=True)
    student_id = Column(String(64), nullable=False, index=True)

    contact_name = Column(String(120), nullable=False)
    contact_phone = Column(String(32), nullable=True)
    contact_email = Column(String(255), nullable=True)

    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    # [{"description", "amount", "enrollment_id", "batch_id"|"pass_template_id", ...}]
    line_items = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    enrollments = relationship("Enrollment", back_populates="transaction")

    @property
    def enrollment_ids(self):
        return [line["enrollment_id"] for line in self.line_items or []]

    def __repr__(self) -> str:
        return f"<Transaction {self.order_id} student={self.student_id} total={self.total_amount}>"
