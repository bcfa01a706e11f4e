from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import (
    ForbiddenException,
    InvariantViolationException,
    ValidationException,
)
from app.models.aircraft import Aircraft
from app.models.booking import Booking
from app.models.booking_correction import BookingCorrection
from app.schemas.checkin import CheckinCorrectionRequest
from app.services.checkin_approval_service import CheckinApprovalService
from app.services.checkin_correction_service import (
    CheckinCorrectionService,
    validate_correction_reason,
)
from tests.utils.flight_slots import FIXED_NOW, SLOT_END, approval_request

REASON = "Hobbs misread on the flight sheet"


@pytest.fixture
def service(db, clock):
    return CheckinCorrectionService(db, clock=clock)


@pytest.fixture
def approve(db, clock, admin_ctx, aircraft, flight_type):
    approvals = CheckinApprovalService(db, clock=clock)

    def _approve(booking, **overrides):
        return approvals.approve_checkin(
            admin_ctx, booking.id, approval_request(aircraft.id, flight_type.id, **overrides)
        )

    return _approve


@pytest.fixture
def approved_booking(booking_factory, approve):
    booking = booking_factory(status="flying")
    approve(booking)
    return booking


def _aircraft(db, aircraft_id) -> Aircraft:
    db.expire_all()
    return db.get(Aircraft, aircraft_id)


def test_correction_moves_total_time_by_the_difference(
    db, service, admin_ctx, aircraft, approved_booking
):
    result = service.correct_checkin(
        admin_ctx,
        approved_booking.id,
        CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
    )

    assert result.correction_delta == Decimal("-0.20")
    assert result.new_applied_delta == Decimal("1.30")
    assert result.aircraft_total_time_in_service == Decimal("1001.30")
    assert result.updated_current_meters is True

    refreshed = _aircraft(db, aircraft.id)
    assert refreshed.total_time_in_service == Decimal("1001.30")
    assert refreshed.current_hobbs == Decimal("101.5")

    booking = db.get(Booking, approved_booking.id)
    assert booking.status == "complete"
    assert booking.hobbs_end == Decimal("101.5")
    assert booking.flight_time == Decimal("1.3")
    assert booking.applied_aircraft_delta == Decimal("1.3")
    assert booking.total_hours_end == Decimal("1001.30")
    assert booking.correction_delta == Decimal("-0.2")
    assert booking.correction_reason == REASON
    assert booking.corrected_at == FIXED_NOW
    assert booking.corrected_by == admin_ctx.user_id


def test_correction_is_audited(db, service, admin_ctx, aircraft, approved_booking):
    service.correct_checkin(
        admin_ctx,
        approved_booking.id,
        CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
    )

    (row,) = db.query(BookingCorrection).all()
    assert row.booking_id == approved_booking.id
    assert row.aircraft_id == aircraft.id
    assert row.old_hobbs_end == Decimal("101.7")
    assert row.new_hobbs_end == Decimal("101.5")
    assert row.old_applied_delta == Decimal("1.5")
    assert row.correction_delta == Decimal("-0.2")
    assert row.reason == REASON
    assert row.corrected_by == admin_ctx.user_id
    assert row.updated_current_meters is True


def test_repeated_corrections_do_not_compound(db, service, admin_ctx, aircraft, approved_booking):
    service.correct_checkin(
        admin_ctx,
        approved_booking.id,
        CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
    )
    second = service.correct_checkin(
        admin_ctx,
        approved_booking.id,
        CheckinCorrectionRequest(hobbs_end=Decimal("101.9"), correction_reason=REASON),
    )

    assert second.correction_delta == Decimal("0.40")
    assert _aircraft(db, aircraft.id).total_time_in_service == Decimal("1001.70")
    assert db.query(BookingCorrection).count() == 2


def test_later_approved_booking_keeps_live_meters(
    db, service, admin_ctx, aircraft, booking_factory, approve
):
    earlier = booking_factory(status="flying")
    later = booking_factory(
        start=SLOT_END + timedelta(hours=1), end=SLOT_END + timedelta(hours=2), status="flying"
    )
    approve(earlier)
    approve(later, hobbs_start=Decimal("101.7"), hobbs_end=Decimal("103.0"))
    assert _aircraft(db, aircraft.id).current_hobbs == Decimal("103.0")

    result = service.correct_checkin(
        admin_ctx,
        earlier.id,
        CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
    )

    assert result.updated_current_meters is False
    refreshed = _aircraft(db, aircraft.id)
    assert refreshed.current_hobbs == Decimal("103.0")
    # 1000.00 + 1.50 + 1.30 - 0.20
    assert refreshed.total_time_in_service == Decimal("1002.60")


def test_recorded_method_is_reused(db, service, admin_ctx, aircraft, booking_factory, approve):
    aircraft.total_time_method = "hobbs less 10%"
    db.commit()
    booking = booking_factory(status="flying")
    approve(booking)

    aircraft = _aircraft(db, aircraft.id)
    aircraft.total_time_method = "hobbs"
    db.commit()

    result = service.correct_checkin(
        admin_ctx,
        booking.id,
        CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
    )

    # 1.3 * 0.9 = 1.17 against the 1.35 recorded at approval
    assert result.new_applied_delta == Decimal("1.17")
    assert result.correction_delta == Decimal("-0.18")


def test_non_positive_correction_changes_nothing(
    db, service, admin_ctx, aircraft, approved_booking
):
    with pytest.raises(InvariantViolationException):
        service.correct_checkin(
            admin_ctx,
            approved_booking.id,
            CheckinCorrectionRequest(hobbs_end=Decimal("100.0"), correction_reason=REASON),
        )

    assert db.query(BookingCorrection).count() == 0
    refreshed = _aircraft(db, aircraft.id)
    assert refreshed.total_time_in_service == Decimal("1001.50")
    assert refreshed.current_hobbs == Decimal("101.7")


def test_unapproved_booking_cannot_be_corrected(service, admin_ctx, booking_factory):
    booking = booking_factory(status="flying")

    with pytest.raises(InvariantViolationException) as exc_info:
        service.correct_checkin(
            admin_ctx,
            booking.id,
            CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
        )
    assert exc_info.value.code == "CHECKIN_NOT_APPROVED"


def test_members_cannot_correct(db, service, member_ctx, approved_booking):
    with pytest.raises(ForbiddenException):
        service.correct_checkin(
            member_ctx,
            approved_booking.id,
            CheckinCorrectionRequest(hobbs_end=Decimal("101.5"), correction_reason=REASON),
        )
    assert db.query(BookingCorrection).count() == 0


@pytest.mark.parametrize("reason", ["", "   short   ", "x" * 2001])
def test_reason_bounds(reason):
    with pytest.raises(ValidationException) as exc_info:
        validate_correction_reason(reason)
    assert exc_info.value.code == "INVALID_CORRECTION_REASON"


def test_reason_is_stripped():
    assert validate_correction_reason(f"  {REASON}  ") == REASON
