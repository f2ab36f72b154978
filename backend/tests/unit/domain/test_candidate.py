import pytest

from passdesk.core.exceptions import ValidationException
from passdesk.domain.candidate import BookingCandidate, ContactInfo


class TestBookingCandidate:
    def test_batch_candidate(self) -> None:
        candidate = BookingCandidate(batch_id="B1")
        assert candidate.is_class
        assert candidate.offering_id == "B1"

    def test_pass_candidate(self) -> None:
        candidate = BookingCandidate(batch_id="", pass_template_id="P1")
        assert not candidate.is_class
        assert candidate.offering_id == "P1"

    @pytest.mark.parametrize(
        "fields", [{}, {"batch_id": "B1", "pass_template_id": "P1"}, {"batch_id": ""}]
    )
    def test_exactly_one_offering(self, fields) -> None:
        with pytest.raises(ValidationException) as exc_info:
            BookingCandidate(**fields)
        assert exc_info.value.code == "INVALID_CANDIDATE"


def test_contact_needs_a_channel() -> None:
    with pytest.raises(ValidationException):
        ContactInfo(name="Asha")
    assert ContactInfo(name="Asha", email="asha@example.com").email == "asha@example.com"
