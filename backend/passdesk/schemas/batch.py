"""Batch DTOs for the business-side endpoints."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from ..services.batch_service import BatchSpec
from ._strict_base import StrictModel, StrictRequestModel


class BatchUpsertRequest(StrictRequestModel):
    name: str = Field(..., max_length=120)
    subject: str = Field(..., max_length=120)
    teacher_name: str = Field(..., max_length=120)
    schedule_pattern: str = Field(..., description="mwf, tts, ss, mtwtf, mtwtfs, mtwtfss or daily")
    start_time: str = Field(..., examples=["18:00"])
    end_time: str = Field(..., examples=["19:00"])
    capacity: int
    valid_from: date
    duration_months: int = 1
    price: Decimal = Decimal("0")

    def to_spec(self, batch_id: Optional[str] = None) -> BatchSpec:
        return BatchSpec(
            name=self.name,
            subject=self.subject,
            teacher_name=self.teacher_name,
            schedule_pattern=self.schedule_pattern,
            start_time=self.start_time,
            end_time=self.end_time,
            capacity=self.capacity,
            valid_from=self.valid_from,
            duration_months=self.duration_months,
            price=self.price,
            batch_id=batch_id,
        )


class BatchResponse(StrictModel):
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
    notes: List[str] = Field(default_factory=list)
