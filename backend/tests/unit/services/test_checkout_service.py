from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from passdesk.core.exceptions import (
    BusinessRuleException,
    CapacityException,
    RepositoryException,
    ScheduleConflictException,
    ServiceException,
)
from passdesk.domain.candidate import BookingCandidate, ContactInfo
from passdesk.models.enrollment import Enrollment
from passdesk.models.transaction import Transaction
from tests.utils.clock import TODAY

STUDENT = "student-1"
CONTACT = ContactInfo(name="Asha Verma", phone="9876543210", email="asha@example.com")


@pytest.fixture
def maths(business, make_batch):
    return make_batch(business)


@pytest.fixture
def gym(business, make_pass):
    return make_pass(business)


class TestCheckout:
    def test_batch_and_pass_become_enrollments(self, engine, db, maths, gym) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=maths.id))
        engine.add_to_reservation(STUDENT, BookingCandidate(pass_template_id=gym.id, auto_renew=True))

        receipt = engine.checkout(STUDENT, CONTACT)

        assert receipt.order_id.startswith("ORD-")
        assert receipt.total_amount == Decimal("2499.00")
        assert receipt.currency == "INR"
        assert len(receipt.enrollments) == 2
        assert len(receipt.line_items) == 2

        by_kind = {bool(e.batch_id): e for e in receipt.enrollments}
        class_enrollment, pass_enrollment = by_kind[True], by_kind[False]
        assert class_enrollment.batch_id == maths.id
        assert class_enrollment.start_date == TODAY
        # 30 operating days, Mon-Sat
        assert class_enrollment.end_date == date(2025, 2, 8)
        assert pass_enrollment.tier == "monthly"
        assert pass_enrollment.auto_renew is True
        assert pass_enrollment.end_date == date(2025, 2, 8)

        db.refresh(maths)
        assert maths.enrolled_count == 1
        assert engine.get_reservation(STUDENT).is_empty
        assert engine.remaining_reservation_seconds(STUDENT) == 0

        stored = db.query(Transaction).one()
        assert stored.contact_name == "Asha Verma"
        assert sorted(stored.enrollment_ids) == sorted(receipt.enrollment_ids)

    def test_daily_pass_covers_one_operating_day(self, engine, business, make_pass) -> None:
        day_pass = make_pass(business, name="Day Pass", tier="daily", price=Decimal("99.00"))
        engine.add_to_reservation(STUDENT, BookingCandidate(pass_template_id=day_pass.id))

        receipt = engine.checkout(STUDENT, CONTACT)

        (enrollment,) = receipt.enrollments
        assert enrollment.start_date == enrollment.end_date == TODAY
        assert enrollment.total_operating_days == 1

    def test_empty_reservation(self, engine) -> None:
        with pytest.raises(BusinessRuleException) as exc_info:
            engine.checkout(STUDENT, CONTACT)
        assert exc_info.value.code == "RESERVATION_EMPTY"

    def test_enrollments_listed_after_checkout(self, engine, maths) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=maths.id))
        engine.checkout(STUDENT, CONTACT)

        (enrollment,) = engine.list_enrollments(STUDENT, active_only=True)
        assert enrollment.status == "active"
        assert enrollment.switch_used is False


class TestRollback:
    def test_persistence_failure_writes_nothing(self, engine, db, maths, gym) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=maths.id))
        engine.add_to_reservation(STUDENT, BookingCandidate(pass_template_id=gym.id))

        with patch.object(
            engine.checkout_service.enrollment_repository,
            "create",
            side_effect=RepositoryException("disk full"),
        ):
            with pytest.raises(ServiceException):
                engine.checkout(STUDENT, CONTACT)

        db.refresh(maths)
        assert maths.enrolled_count == 0
        assert db.query(Transaction).count() == 0
        assert db.query(Enrollment).count() == 0
        assert len(engine.get_reservation(STUDENT).items) == 2

    def test_second_item_full_releases_first_seat(self, engine, db, business, maths, make_batch) -> None:
        tiny = make_batch(
            business, name="Tiny", subject="English", teacher_name="T4", schedule_pattern="tts", capacity=1
        )
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=maths.id))
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=tiny.id))
        # Someone else takes the last seat directly
        tiny.enrolled_count = 1
        db.commit()

        with pytest.raises(CapacityException):
            engine.checkout(STUDENT, CONTACT)

        db.refresh(maths)
        assert maths.enrolled_count == 0
        assert db.query(Enrollment).count() == 0
        assert len(engine.get_reservation(STUDENT).items) == 2


class TestRevalidation:
    def test_enrollment_made_meanwhile_blocks_checkout(
        self, engine, db, business, maths, make_batch, make_enrollment
    ) -> None:
        clash = make_batch(
            business, name="Clash", subject="Science", teacher_name="T5", start_time="18:30", end_time="19:30"
        )
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=maths.id))
        make_enrollment(STUDENT, batch=clash)

        with pytest.raises(ScheduleConflictException) as exc_info:
            engine.checkout(STUDENT, CONTACT)

        assert exc_info.value.overlap_minutes == 30
        db.refresh(maths)
        assert maths.enrolled_count == 0
        assert db.query(Transaction).count() == 0

    def test_last_seat_goes_to_first_checkout(self, engine, db, business, make_batch) -> None:
        last_seat = make_batch(business, capacity=1)
        engine.add_to_reservation("student-a", BookingCandidate(batch_id=last_seat.id))
        engine.add_to_reservation("student-b", BookingCandidate(batch_id=last_seat.id))

        engine.checkout("student-a", CONTACT)
        with pytest.raises(CapacityException) as exc_info:
            engine.checkout("student-b", CONTACT)

        assert exc_info.value.code == "CAPACITY_FULL"
        db.refresh(last_seat)
        assert last_seat.enrolled_count == 1
        assert len(engine.get_reservation("student-b").items) == 1
