import pytest

from app.core.exceptions import ForbiddenException, RosterWindowException
from app.models.booking import Booking
from app.models.user import User
from app.schemas.booking import TrialBookingCreate
from app.services.booking_service import BookingService
from tests.utils.flight_slots import nzdt


@pytest.fixture
def service(db, clock):
    return BookingService(db, clock=clock)


def _trial(instructor_id, start, end, **overrides) -> TrialBookingCreate:
    values = dict(
        start_time=start,
        end_time=end,
        instructor_id=instructor_id,
        guest_first_name="Gus",
        guest_last_name="Guest",
        guest_email="Gus.Guest@Example.com",
        voucher_number="TF-1001",
    )
    values.update(overrides)
    return TrialBookingCreate(**values)


def test_trial_inside_roster_creates_guest(db, service, admin_ctx, instructor, aircraft, roster):
    booking = service.create_trial_booking(
        admin_ctx, _trial(instructor.id, nzdt(17, 9), nzdt(17, 10), aircraft_id=aircraft.id)
    )

    guest = db.get(User, booking.user_id)
    assert guest.email == "gus.guest@example.com"
    assert guest.role == "student"
    assert booking.voucher_number == "TF-1001"
    assert booking.purpose == "Trial flight"
    assert booking.status == "unconfirmed"


def test_returning_guest_is_matched_by_email(db, service, admin_ctx, instructor, roster):
    first = service.create_trial_booking(
        admin_ctx, _trial(instructor.id, nzdt(17, 9), nzdt(17, 10))
    )
    second = service.create_trial_booking(
        admin_ctx,
        _trial(instructor.id, nzdt(17, 11), nzdt(17, 12), guest_email="gus.guest@example.com"),
    )

    assert first.user_id == second.user_id
    assert db.query(User).filter(User.role == "student").count() == 1


def test_trial_outside_roster_leaves_nothing_behind(db, service, admin_ctx, instructor, roster):
    with pytest.raises(RosterWindowException) as exc_info:
        service.create_trial_booking(
            admin_ctx, _trial(instructor.id, nzdt(17, 16, 30), nzdt(17, 17, 30))
        )

    assert exc_info.value.code == "OUTSIDE_ROSTER"
    assert db.query(Booking).count() == 0
    assert db.query(User).filter(User.role == "student").count() == 0


def test_trial_crossing_local_midnight_is_outside_roster(service, admin_ctx, instructor, roster):
    with pytest.raises(RosterWindowException):
        service.create_trial_booking(
            admin_ctx, _trial(instructor.id, nzdt(17, 16), nzdt(18, 9))
        )


def test_trial_without_any_roster(service, admin_ctx, instructor):
    with pytest.raises(RosterWindowException):
        service.create_trial_booking(admin_ctx, _trial(instructor.id, nzdt(17, 9), nzdt(17, 10)))


def test_members_cannot_book_trials(service, member_ctx, instructor, roster):
    with pytest.raises(ForbiddenException) as exc_info:
        service.create_trial_booking(member_ctx, _trial(instructor.id, nzdt(17, 9), nzdt(17, 10)))
    assert exc_info.value.code == "STAFF_ONLY"
