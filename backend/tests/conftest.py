# backend/tests/conftest.py
"""
Pytest configuration for the tutorbook scheduling core.

Every test gets a fresh in-memory SQLite database with the full schema,
overlap triggers included. Time-sensitive services receive a fixed clock so
bookings in January 2030 are always in the future.
"""

import os
import sys

# Set testing mode BEFORE any application imports
os.environ["is_testing"] = "true"
os.environ["SYSTEM_TIMEZONE"] = "UTC"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ.pop("STRIPE_SECRET_KEY", None)

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from tests.helpers import FIXED_NOW, WEEKDAY_TEMPLATE, FakeClock, FakePaymentProvider
from tutorbook.api.dependencies import get_db
from tutorbook.database import init_db
from tutorbook.database.engines import build_engine
from tutorbook.main import create_app
from tutorbook.models.session import TutoringSession
from tutorbook.models.tutor import TutorProfile
from tutorbook.ratelimit.store import InMemoryWindowStore
from tutorbook.repositories.availability_repository import AvailabilityRepository
from tutorbook.repositories.session_repository import SessionRepository
from tutorbook.repositories.tutor_repository import TutorRepository
from tutorbook.schemas.availability import WeeklyAvailability
from tutorbook.services.availability_service import AvailabilityService
from tutorbook.services.booking_service import BookingService
from tutorbook.services.payment_rate_limiter import PaymentRateLimiter
from tutorbook.services.payment_service import PaymentService


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def engine():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_tutor(db: Session):
    """Create a tutor (optionally with a template) and commit it."""

    def _make(
        max_weekly_sessions: Optional[int] = None,
        template: Optional[Dict[str, Any]] = WEEKDAY_TEMPLATE,
        display_name: str = "Test Tutor",
    ) -> TutorProfile:
        tutor = TutorRepository(db).create_tutor(
            display_name=display_name, max_weekly_sessions=max_weekly_sessions
        )
        if template is not None:
            AvailabilityRepository(db).upsert(tutor.id, WeeklyAvailability.model_validate(template))
        db.commit()
        return tutor

    return _make


@pytest.fixture
def tutor(make_tutor) -> TutorProfile:
    return make_tutor()


@pytest.fixture
def insert_session(db: Session):
    """Insert a session row directly, bypassing the booking rules."""

    def _insert(
        tutor_id: str,
        start_time: datetime,
        end_time: datetime,
        status: str = "scheduled",
        student_id: str = "student-1",
    ) -> TutoringSession:
        session = SessionRepository(db).insert_session(
            tutor_id=tutor_id,
            student_id=student_id,
            start_time=start_time,
            end_time=end_time,
            status=status,
        )
        db.commit()
        return session

    return _insert


# ============================================================================
# Service fixtures
# ============================================================================


@pytest.fixture
def booking_service(db: Session) -> BookingService:
    return BookingService(db, clock=lambda: FIXED_NOW)


@pytest.fixture
def availability_service(db: Session) -> AvailabilityService:
    return AvailabilityService(db, clock=lambda: FIXED_NOW)


@pytest.fixture
def fake_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def guard_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def payment_rate_limiter(guard_clock: FakeClock) -> PaymentRateLimiter:
    # Permissive enough that sequential service calls are never throttled
    return PaymentRateLimiter(
        max_requests=100, window_ms=60_000, min_interval_ms=0, cooldown_ms=20_000, clock=guard_clock
    )


@pytest.fixture
def payment_service(
    db: Session, fake_provider: FakePaymentProvider, payment_rate_limiter: PaymentRateLimiter
) -> PaymentService:
    return PaymentService(db, provider=fake_provider, rate_limiter=payment_rate_limiter)


# ============================================================================
# HTTP fixtures
# ============================================================================


@pytest.fixture
def app(engine, db: Session, fake_provider: FakePaymentProvider, payment_rate_limiter: PaymentRateLimiter):
    app = create_app(
        engine=engine,
        payment_provider=fake_provider,
        payment_rate_limiter=payment_rate_limiter,
        rate_limit_store=InMemoryWindowStore(),
        create_schema=False,
    )

    def _get_test_db():
        yield db

    app.dependency_overrides[get_db] = _get_test_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
