# backend/tests/conftest.py
"""
Shared fixtures for the booking engine test suite.

Every test gets a fresh in-memory SQLite database. StaticPool keeps the
single connection alive so that the TestClient's worker threads and the
test body see the same data.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies.database import get_db
from app.core.enums import RoleName
from app.database import Base, init_db
from app.main import app
from app.models.aircraft import Aircraft
from app.models.booking import Booking, BookingStatus, BookingType
from app.models.flight_type import FlightType
from app.models.instructor import Instructor
from app.models.roster import RosterRule
from app.models.tenant import Tenant
from app.models.user import User
from app.principal import AuthContext
from tests.utils.flight_slots import (
    FIXED_NOW,
    SLOT_END,
    SLOT_START,
    TENANT_TIMEZONE,
    auth_headers_for,
)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """Create a new database session for each test."""
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


# ============================================================================
# Seed data
# ============================================================================


@pytest.fixture
def tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Test Aero Club", timezone=TENANT_TIMEZONE)
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture
def other_tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Other Aero Club", timezone=TENANT_TIMEZONE)
    db.add(tenant)
    db.commit()
    return tenant


def _make_user(db: Session, tenant: Tenant, email: str, role: RoleName, first_name: str) -> User:
    user = User(
        tenant_id=tenant.id,
        email=email,
        first_name=first_name,
        last_name="Test",
        role=role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "admin@example.com", RoleName.ADMIN, "Ada")


@pytest.fixture
def member_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "member@example.com", RoleName.MEMBER, "Max")


@pytest.fixture
def other_member(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "other.member@example.com", RoleName.MEMBER, "Olive")


@pytest.fixture
def instructor_user(db: Session, tenant: Tenant) -> User:
    return _make_user(db, tenant, "instructor@example.com", RoleName.INSTRUCTOR, "Ivan")


@pytest.fixture
def instructor(db: Session, tenant: Tenant, instructor_user: User) -> Instructor:
    instructor = Instructor(
        tenant_id=tenant.id, user_id=instructor_user.id, is_actively_instructing=True
    )
    db.add(instructor)
    db.commit()
    return instructor


@pytest.fixture
def aircraft(db: Session, tenant: Tenant) -> Aircraft:
    """Hobbs-recording aircraft with live meters at 100.2 hobbs / 80.0 tach."""
    aircraft = Aircraft(
        tenant_id=tenant.id,
        registration="ZK-ABC",
        type="C172",
        on_line=True,
        current_hobbs=Decimal("100.2"),
        current_tach=Decimal("80.0"),
        total_time_in_service=Decimal("1000.00"),
        record_hobbs=True,
    )
    db.add(aircraft)
    db.commit()
    return aircraft


@pytest.fixture
def second_aircraft(db: Session, tenant: Tenant) -> Aircraft:
    aircraft = Aircraft(
        tenant_id=tenant.id,
        registration="ZK-XYZ",
        type="PA28",
        on_line=True,
        current_hobbs=Decimal("500.0"),
        total_time_in_service=Decimal("2000.00"),
        record_hobbs=True,
    )
    db.add(aircraft)
    db.commit()
    return aircraft


@pytest.fixture
def flight_type(db: Session, tenant: Tenant) -> FlightType:
    flight_type = FlightType(tenant_id=tenant.id, name="Dual", instruction_type="dual")
    db.add(flight_type)
    db.commit()
    return flight_type


@pytest.fixture
def roster(db: Session, tenant: Tenant, instructor: Instructor) -> list:
    """Instructor rostered 08:00-17:00 local, every day of the week."""
    rules = [
        RosterRule(
            tenant_id=tenant.id,
            instructor_id=instructor.id,
            day_of_week=weekday,
            start_time="08:00",
            end_time="17:00",
            effective_from=date(2020, 1, 1),
        )
        for weekday in range(7)
    ]
    db.add_all(rules)
    db.commit()
    return rules


# ============================================================================
# Callers
# ============================================================================


@pytest.fixture
def admin_ctx(admin_user: User, tenant: Tenant) -> AuthContext:
    return AuthContext(user_id=admin_user.id, role=RoleName.ADMIN, tenant_id=tenant.id)


@pytest.fixture
def instructor_ctx(instructor_user: User, tenant: Tenant) -> AuthContext:
    return AuthContext(user_id=instructor_user.id, role=RoleName.INSTRUCTOR, tenant_id=tenant.id)


@pytest.fixture
def member_ctx(member_user: User, tenant: Tenant) -> AuthContext:
    return AuthContext(user_id=member_user.id, role=RoleName.MEMBER, tenant_id=tenant.id)


@pytest.fixture
def admin_headers(admin_ctx: AuthContext) -> Dict[str, str]:
    return auth_headers_for(admin_ctx)


@pytest.fixture
def member_headers(member_ctx: AuthContext) -> Dict[str, str]:
    return auth_headers_for(member_ctx)


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
def client(db: Session):
    """Create a test client bound to the test session."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    # Don't use context manager - the lifespan would create the dev database
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


# ============================================================================
# Bookings
# ============================================================================


@pytest.fixture
def booking_factory(db: Session, tenant: Tenant, member_user: User, aircraft: Aircraft):
    """
    Insert bookings directly, bypassing the service rules.

    ``status="flying"`` also fills the checkout snapshot and start meters
    from the aircraft's live readings.
    """

    def _create(
        start: datetime = SLOT_START,
        end: datetime = SLOT_END,
        status: str = BookingStatus.CONFIRMED.value,
        aircraft_obj: Aircraft = aircraft,
        **overrides,
    ) -> Booking:
        values = dict(
            tenant_id=tenant.id,
            start_time=start,
            end_time=end,
            aircraft_id=aircraft_obj.id if aircraft_obj is not None else None,
            user_id=member_user.id,
            booking_type=BookingType.FLIGHT.value,
            purpose="Circuits",
            status=status,
        )
        if status == BookingStatus.FLYING.value:
            values.update(
                authorization_completed=True,
                checked_out_aircraft_id=aircraft_obj.id,
                checked_out_at=start,
                hobbs_start=aircraft_obj.current_hobbs,
                tach_start=aircraft_obj.current_tach,
            )
        values.update(overrides)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        return booking

    return _create
