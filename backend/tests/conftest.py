"""
Shared fixtures for the PassDesk test suite.

Every test gets a fresh in-memory SQLite database, a frozen clock that can
be advanced, and small factories for businesses, batches, passes and
enrollments.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Callable

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from passdesk.api.dependencies import get_booking_engine
from passdesk.core import booking_lock
from passdesk.core.config import Settings
from passdesk.database import Base, build_engine
from passdesk.domain.operating_calendar import add_months
from passdesk.main import app
from passdesk.models.batch import Batch, normalize_teacher_name
from passdesk.models.business import Business
from passdesk.models.enrollment import Enrollment
from passdesk.models.pass_template import PassTemplate
from passdesk.services.booking_engine import BookingEngine

# Import models so Base.metadata is populated for create_all.
import passdesk.models  # noqa: F401
from tests.utils.clock import TODAY, FrozenClock


@pytest.fixture(autouse=True)
def no_shared_redis(monkeypatch):
    """Keep booking locks process-local; Redis-backed paths are tested with mocks."""
    monkeypatch.setattr(booking_lock, "_get_sync_redis", lambda: None)


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Session:
    session = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def engine(db, test_settings, clock) -> BookingEngine:
    return BookingEngine(db, config=test_settings, clock=clock)


@pytest.fixture
def make_business(db) -> Callable[..., Business]:
    def _make(**overrides) -> Business:
        fields = dict(
            name="Sharma Coaching",
            vertical="coaching",
            timezone="Asia/Kolkata",
            operating_days="mon,tue,wed,thu,fri,sat",
        )
        fields.update(overrides)
        business = Business(**fields)
        db.add(business)
        db.commit()
        return business

    return _make


@pytest.fixture
def business(make_business) -> Business:
    return make_business()


@pytest.fixture
def make_batch(db) -> Callable[..., Batch]:
    def _make(business: Business, **overrides) -> Batch:
        fields = dict(
            name="Evening A",
            subject="Mathematics",
            teacher_name="Anil Kumar",
            schedule_pattern="mwf",
            start_time="18:00",
            end_time="19:00",
            capacity=20,
            enrolled_count=0,
            price=Decimal("1500.00"),
            status="active",
            valid_from=TODAY,
            duration_months=3,
        )
        fields.update(overrides)
        fields.setdefault("valid_until", add_months(fields["valid_from"], fields["duration_months"]))
        fields.setdefault("teacher_key", normalize_teacher_name(fields["teacher_name"]))
        batch = Batch(business_id=business.id, **fields)
        db.add(batch)
        db.commit()
        return batch

    return _make


@pytest.fixture
def make_pass(db) -> Callable[..., PassTemplate]:
    def _make(business: Business, **overrides) -> PassTemplate:
        fields = dict(
            name="Gym Access",
            time_segment="Morning (6-10 AM)",
            tier="monthly",
            price=Decimal("999.00"),
        )
        fields.update(overrides)
        template = PassTemplate(business_id=business.id, **fields)
        db.add(template)
        db.commit()
        return template

    return _make


@pytest.fixture
def make_enrollment(db) -> Callable[..., Enrollment]:
    """Insert an active enrollment directly, taking a seat for batch enrollments."""

    def _make(student_id: str, batch: Batch = None, pass_template: PassTemplate = None, **overrides):
        start_date = overrides.pop("start_date", TODAY)
        offering = batch or pass_template
        fields = dict(
            student_id=student_id,
            business_id=offering.business_id,
            batch_id=batch.id if batch else None,
            pass_template_id=pass_template.id if pass_template else None,
            title=f"{batch.subject} - {batch.name}" if batch else pass_template.name,
            subject=batch.subject if batch else None,
            tier=pass_template.tier if pass_template else None,
            price=offering.price,
            status="active",
            start_date=start_date,
            end_date=start_date + timedelta(days=34),
            total_operating_days=30,
        )
        fields.update(overrides)
        enrollment = Enrollment(**fields)
        db.add(enrollment)
        if batch is not None and fields["status"] == "active":
            batch.enrolled_count += 1
        db.commit()
        return enrollment

    return _make


@pytest.fixture
def client(db, test_settings, clock):
    """TestClient wired to the in-memory database and the frozen clock."""

    def _engine_override() -> BookingEngine:
        return BookingEngine(db, config=test_settings, clock=clock)

    app.dependency_overrides[get_booking_engine] = _engine_override
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
