"""Checkout DTOs."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field

from ..domain.candidate import ContactInfo
from ..domain.snapshots import TransactionReceipt
from ._strict_base import StrictModel, StrictRequestModel
from .enrollment import EnrollmentResponse


class CheckoutRequest(StrictRequestModel):
    contact_name: str = Field(..., max_length=120)
    contact_phone: Optional[str] = Field(None, max_length=32)
    contact_email: Optional[EmailStr] = None

    def to_contact(self) -> ContactInfo:
        return ContactInfo(
            name=self.contact_name,
            phone=self.contact_phone or None,
            email=str(self.contact_email) if self.contact_email else None,
        )


class CheckoutResponse(StrictModel):
    transaction_id: str
    order_id: str
    student_id: str
    total_amount: Decimal
    currency: str
    created_at: datetime
    line_items: List[Dict[str, Any]] = Field(default_factory=list)
    enrollments: List[EnrollmentResponse] = Field(default_factory=list)

    @classmethod
    def from_receipt(cls, receipt: TransactionReceipt) -> "CheckoutResponse":
        return cls(
            transaction_id=receipt.id,
            order_id=receipt.order_id,
            student_id=receipt.student_id,
            total_amount=receipt.total_amount,
            currency=receipt.currency,
            created_at=receipt.created_at,
            line_items=[dict(line) for line in receipt.line_items],
            enrollments=[EnrollmentResponse.model_validate(e) for e in receipt.enrollments],
        )
