"""Reservation DTOs."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from ..domain.candidate import BookingCandidate
from ..domain.conflicts import ConflictResult
from ..domain.snapshots import ReservationSnapshot
from ._strict_base import StrictModel, StrictRequestModel


class BookingCandidateRequest(StrictRequestModel):
    """A batch seat or a pass the student wants to reserve."""

    batch_id: Optional[str] = Field(None, description="Batch ULID for a class booking")
    pass_template_id: Optional[str] = Field(None, description="Pass template ULID")
    start_date: Optional[date] = Field(
        None, description="Defaults to today, or the batch start if later"
    )
    auto_renew: bool = False

    def to_candidate(self) -> BookingCandidate:
        return BookingCandidate(
            batch_id=self.batch_id or None,
            pass_template_id=self.pass_template_id or None,
            start_date=self.start_date,
            auto_renew=self.auto_renew,
        )


class ConflictCheckResponse(StrictModel):
    kind: str
    has_conflict: bool
    message: Optional[str] = None
    notes: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: ConflictResult) -> "ConflictCheckResponse":
        data = result.to_dict()
        extra = {
            key: value
            for key, value in data.items()
            if key not in {"kind", "has_conflict", "message", "notes"}
        }
        return cls(
            kind=data["kind"],
            has_conflict=data["has_conflict"],
            message=data.get("message"),
            notes=list(data.get("notes", [])),
            details=extra,
        )


class ReservationItemResponse(StrictModel):
    id: str
    position: int
    business_id: str
    title: str
    start_date: date
    price: Decimal
    auto_renew: bool
    batch_id: Optional[str] = None
    pass_template_id: Optional[str] = None


class ReservationResponse(StrictModel):
    student_id: str
    items: List[ReservationItemResponse] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    remaining_seconds: int = 0
    is_expired: bool = False
    total: Decimal = Decimal("0")

    @classmethod
    def from_snapshot(cls, snapshot: ReservationSnapshot) -> "ReservationResponse":
        return cls(
            student_id=snapshot.student_id,
            items=[ReservationItemResponse.model_validate(item) for item in snapshot.items],
            expires_at=snapshot.expires_at,
            remaining_seconds=snapshot.remaining_seconds,
            is_expired=snapshot.is_expired,
            total=snapshot.total,
        )


class AddToReservationResponse(StrictModel):
    item: ReservationItemResponse
    notes: List[str] = Field(default_factory=list)
    expires_at: datetime
    remaining_seconds: int


class RemainingTimeResponse(StrictModel):
    student_id: str
    remaining_seconds: int


class ClearReservationResponse(StrictModel):
    removed: int


class ReservationItemUpdate(StrictRequestModel):
    start_date: Optional[date] = None
    auto_renew: Optional[bool] = None

    @model_validator(mode="after")
    def _at_least_one_field(self) -> "ReservationItemUpdate":
        if self.start_date is None and self.auto_renew is None:
            raise ValueError("Provide start_date or auto_renew")
        return self
