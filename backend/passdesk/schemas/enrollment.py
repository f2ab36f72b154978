"""Enrollment DTOs."""

from datetime import date
from typing import Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class EnrollmentResponse(StrictModel):
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


class SwitchBatchRequest(StrictRequestModel):
    new_batch_id: str = Field(..., min_length=1, description="Batch to move the seat to")


class AutoRenewUpdate(StrictRequestModel):
    auto_renew: bool
