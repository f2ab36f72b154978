"""Reservation manager: adding, the shared timer, expiry and eviction."""

from datetime import timedelta

import pytest

from passdesk.core.exceptions import (
    AlreadyReservedException,
    BusinessRuleException,
    CapacityException,
    NotFoundException,
    ReservationExpiredException,
    ScheduleConflictException,
    ValidationException,
)
from passdesk.domain.candidate import BookingCandidate, ContactInfo
from passdesk.domain.conflicts import Compatible
from passdesk.models.reservation import Reservation
from tests.utils.clock import NOW, TODAY

STUDENT = "student-1"


@pytest.fixture
def physics(business, make_batch):
    return make_batch(
        business,
        name="Physics A",
        subject="Physics",
        teacher_name="T. Physics",
        schedule_pattern="mwf",
        start_time="16:00",
        end_time="17:00",
    )


@pytest.fixture
def chemistry(business, make_batch):
    return make_batch(
        business,
        name="Chem A",
        subject="Chemistry",
        teacher_name="T. Chem",
        schedule_pattern="tts",
        start_time="15:30",
        end_time="16:30",
    )


@pytest.fixture
def biology(business, make_batch):
    return make_batch(
        business,
        name="Bio A",
        subject="Biology",
        teacher_name="T. Bio",
        schedule_pattern="mwf",
        start_time="16:30",
        end_time="17:30",
    )


class TestAddToReservation:
    def test_first_item_starts_the_timer(self, engine, physics) -> None:
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

        assert isinstance(added.result, Compatible)
        assert added.item.start_date == TODAY
        assert added.item.title == "Physics - Physics A @ Sharma Coaching"
        assert engine.remaining_reservation_seconds(STUDENT) == 900

    def test_later_items_do_not_reset_the_timer(self, engine, clock, physics, chemistry) -> None:
        first = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=5)
        second = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=chemistry.id))

        assert second.expires_at == first.expires_at
        assert engine.remaining_reservation_seconds(STUDENT) == 600
        assert [i.position for i in engine.get_reservation(STUDENT).items] == [0, 1]

    def test_existing_enrollment_conflict(
        self, engine, physics, chemistry, biology, make_enrollment
    ) -> None:
        make_enrollment(STUDENT, batch=physics)

        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=chemistry.id))
        with pytest.raises(ScheduleConflictException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=biology.id))

        error = exc_info.value
        assert [d.value for d in error.overlap_days] == ["mon", "wed", "fri"]
        assert error.overlap_minutes == 30
        assert error.result.source == "enrollment"
        assert len(engine.get_reservation(STUDENT).items) == 1

    def test_conflict_with_another_reservation_item(self, engine, physics, biology) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

        with pytest.raises(ScheduleConflictException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=biology.id))
        assert exc_info.value.result.source == "reservation"
        assert exc_info.value.result.offending.kind == "reservation_item"

    def test_duplicate_batch(self, engine, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        with pytest.raises(AlreadyReservedException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        assert exc_info.value.result.reason == "duplicate_batch"

    def test_same_subject_at_same_center(self, engine, business, physics, make_batch) -> None:
        other_physics = make_batch(
            business, name="Physics B", subject="physics ", teacher_name="T2", schedule_pattern="ss"
        )
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        with pytest.raises(AlreadyReservedException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=other_physics.id))
        assert exc_info.value.result.reason == "same_subject"

    def test_same_subject_elsewhere_is_a_note(
        self, engine, physics, make_business, make_batch
    ) -> None:
        elsewhere = make_business(name="City Tutorials")
        other_physics = make_batch(
            elsewhere, subject="Physics", schedule_pattern="ss", start_time="10:00", end_time="11:00"
        )
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=other_physics.id))
        assert added.result.notes == ("You also study Physics at another center",)

    def test_back_to_back_is_a_note(self, engine, business, physics, make_batch) -> None:
        after = make_batch(
            business, subject="English", teacher_name="T3", start_time="17:00", end_time="18:00"
        )
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=after.id))
        assert len(added.result.notes) == 1
        assert added.result.notes[0].startswith("Back-to-back with Physics - Physics A")

    def test_full_batch(self, engine, business, make_batch) -> None:
        full = make_batch(business, capacity=1, enrolled_count=1)
        with pytest.raises(CapacityException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=full.id))
        assert exc_info.value.result.capacity == 1

    def test_closed_batch(self, engine, business, make_batch) -> None:
        closed = make_batch(business, status="cancelled")
        with pytest.raises(BusinessRuleException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=closed.id))
        assert exc_info.value.code == "BATCH_NOT_OPEN"

    def test_unknown_batch(self, engine) -> None:
        with pytest.raises(NotFoundException):
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id="01HF4G12ABCDEF3456789XYZAB"))

    def test_pass_once_per_business(self, engine, business, make_pass, make_enrollment) -> None:
        gym = make_pass(business)
        engine.add_to_reservation(STUDENT, BookingCandidate(pass_template_id=gym.id))
        with pytest.raises(AlreadyReservedException) as exc_info:
            engine.add_to_reservation(STUDENT, BookingCandidate(pass_template_id=gym.id))
        assert exc_info.value.result.reason == "active_pass"

        make_enrollment("student-2", pass_template=gym)
        result = engine.check_add("student-2", BookingCandidate(pass_template_id=gym.id))
        assert result.has_conflict
        assert result.reason == "active_pass"


class TestStartDates:
    def test_defaults_to_batch_start_when_later(self, engine, business, make_batch) -> None:
        later = make_batch(business, valid_from=TODAY + timedelta(days=5), status="scheduled")
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=later.id))
        assert added.item.start_date == TODAY + timedelta(days=5)

    @pytest.mark.parametrize("offset", [-1, 61])
    def test_out_of_window_start_dates(self, engine, physics, offset) -> None:
        candidate = BookingCandidate(batch_id=physics.id, start_date=TODAY + timedelta(days=offset))
        with pytest.raises(ValidationException) as exc_info:
            engine.add_to_reservation(STUDENT, candidate)
        assert exc_info.value.code == "INVALID_START_DATE"

    def test_update_item_start_date_and_auto_renew(self, engine, physics) -> None:
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

        item = engine.update_reservation_item_start_date(
            STUDENT, added.item.id, TODAY + timedelta(days=3)
        )
        assert item.start_date == TODAY + timedelta(days=3)
        item = engine.update_reservation_item_auto_renew(STUDENT, added.item.id, True)
        assert item.auto_renew is True

        with pytest.raises(ValidationException):
            engine.update_reservation_item_start_date(
                STUDENT, added.item.id, TODAY - timedelta(days=1)
            )


class TestCheckAdd:
    def test_check_add_is_read_only(self, engine, db, physics, biology) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

        result = engine.check_add(STUDENT, BookingCandidate(batch_id=biology.id))

        assert result.has_conflict
        assert result.kind == "schedule_conflict"
        assert result.overlap_minutes == 30
        assert len(engine.get_reservation(STUDENT).items) == 1

    def test_check_add_ignores_expired_items(self, engine, clock, physics, biology) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=15)
        assert isinstance(engine.check_add(STUDENT, BookingCandidate(batch_id=biology.id)), Compatible)


class TestExpiry:
    def test_checkout_after_window_fails_and_clears(self, engine, clock, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(seconds=900)

        assert engine.remaining_reservation_seconds(STUDENT) == 0
        with pytest.raises(ReservationExpiredException) as exc_info:
            engine.checkout(STUDENT, ContactInfo(name="Asha", phone="9999999999"))
        assert exc_info.value.status_code == 410

        snapshot = engine.get_reservation(STUDENT)
        assert snapshot.is_empty
        assert snapshot.remaining_seconds == 0
        # Told once; afterwards the reservation is simply empty
        with pytest.raises(BusinessRuleException) as exc_info:
            engine.checkout(STUDENT, ContactInfo(name="Asha", phone="9999999999"))
        assert exc_info.value.code == "RESERVATION_EMPTY"

    def test_one_second_before_expiry_is_still_live(self, engine, clock, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(seconds=899)
        assert engine.remaining_reservation_seconds(STUDENT) == 1
        assert not engine.get_reservation(STUDENT).is_expired

    def test_swept_reservation_raises_on_next_mutation(
        self, engine, db, clock, physics, chemistry
    ) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=20)

        assert engine.reservations.sweep_expired() == 1
        stored = db.query(Reservation).filter_by(student_id=STUDENT).one()
        assert stored.items == []
        assert stored.lapsed_at is not None

        with pytest.raises(ReservationExpiredException):
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=chemistry.id))

        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=chemistry.id))
        assert added.expires_at == clock() + timedelta(minutes=15)

    def test_lazy_eviction_on_mutation(self, engine, clock, physics, chemistry) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=16)

        with pytest.raises(ReservationExpiredException):
            engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=chemistry.id))
        assert engine.get_reservation(STUDENT).is_empty

    def test_clear_never_raises(self, engine, clock, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(hours=1)

        engine.clear_reservation(STUDENT)

        assert engine.get_reservation(STUDENT).is_empty
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

    def test_sweep_leaves_live_reservations_alone(self, engine, clock, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=14)
        assert engine.reservations.sweep_expired() == 0
        assert len(engine.get_reservation(STUDENT).items) == 1


class TestRemoveAndExtend:
    def test_remove_last_item_stops_the_timer(self, engine, physics) -> None:
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

        engine.remove_from_reservation(STUDENT, added.item.id)

        assert engine.remaining_reservation_seconds(STUDENT) == 0
        assert engine.get_reservation(STUDENT).is_empty

    def test_remove_unknown_item(self, engine, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        with pytest.raises(NotFoundException):
            engine.remove_from_reservation(STUDENT, "01HF4G12ABCDEF3456789XYZAB")

    def test_remove_after_expiry_raises(self, engine, clock, physics) -> None:
        added = engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=15)
        with pytest.raises(ReservationExpiredException):
            engine.remove_from_reservation(STUDENT, added.item.id)

    def test_extend_restarts_the_window(self, engine, clock, physics) -> None:
        engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
        clock.advance(minutes=10)

        expires_at = engine.extend_reservation(STUDENT)

        assert expires_at == NOW + timedelta(minutes=25)
        assert engine.remaining_reservation_seconds(STUDENT) == 900

    def test_extend_empty_reservation(self, engine) -> None:
        with pytest.raises(NotFoundException):
            engine.extend_reservation(STUDENT)


def test_snapshot_totals(engine, physics, chemistry) -> None:
    engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))
    engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=chemistry.id))

    snapshot = engine.get_reservation(STUDENT)

    assert snapshot.total == physics.price + chemistry.price
    assert snapshot.remaining_seconds == 900
    assert snapshot.expires_at is not None


def test_operations_are_measured(engine, physics) -> None:
    engine.add_to_reservation(STUDENT, BookingCandidate(batch_id=physics.id))

    metrics = engine.reservations.get_metrics()["add_to_reservation"]

    assert metrics["count"] >= 1
    assert metrics["success_count"] >= 1
