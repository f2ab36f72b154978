from dataclasses import dataclass
from datetime import date
from typing import Optional, cast

from passdesk.core.exceptions import ValidationException


@dataclass(frozen=True)
class BookingCandidate:
    """A tentative booking: either a batch seat or a non-class pass."""

    batch_id: Optional[str] = None
    pass_template_id: Optional[str] = None
    start_date: Optional[date] = None
    auto_renew: bool = False

    def __post_init__(self) -> None:
        if bool(self.batch_id) == bool(self.pass_template_id):
            raise ValidationException(
                "Choose exactly one of a batch or a pass",
                code="INVALID_CANDIDATE",
                details={"batch_id": self.batch_id, "pass_template_id": self.pass_template_id},
            )

    @property
    def is_class(self) -> bool:
        return bool(self.batch_id)

    @property
    def offering_id(self) -> str:
        # __post_init__ guarantees exactly one id is set
        return cast(str, self.batch_id or self.pass_template_id)


@dataclass(frozen=True)
class ContactInfo:
    """Who paid; recorded on the transaction."""

    name: str
    phone: Optional[str] = None
    email: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.name or "").strip():
            raise ValidationException("Contact name is required", code="INVALID_CONTACT")
        if not (self.phone or self.email):
            raise ValidationException(
                "A phone number or email is required", code="INVALID_CONTACT"
            )
