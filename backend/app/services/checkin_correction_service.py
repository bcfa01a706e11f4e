# backend/app/services/checkin_correction_service.py
"""
Post-approval correction of a booking's end meter readings.

The aircraft's total time in service moves by the difference between the
newly derived applied delta and the one recorded when the booking was
approved (or last corrected), so repeated corrections never compound.
Live meters follow only when no later approved flight exists for the
aircraft. Every correction leaves a BookingCorrection audit row.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging
from typing import Callable

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..models.aircraft import MeterBasis, TotalTimeMethod
from ..models.booking_correction import BookingCorrection
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import AuthContext
from ..repositories import RepositoryFactory
from ..schemas.checkin import CheckinCorrectionRequest
from .base import BaseService
from .invoice_calculator import ZERO, round_to_two_decimals
from .meter_reconciliation import (
    MeterReadings,
    calculate_flight_delta,
    flight_times_by_basis,
    plan_correction,
    resolve_total_time_method,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckinCorrectionResult:
    booking_id: str
    correction_delta: Decimal
    new_applied_delta: Decimal
    aircraft_total_time_in_service: Decimal
    updated_current_meters: bool


def validate_correction_reason(reason: str) -> str:
    reason = (reason or "").strip()
    minimum = settings.correction_reason_min_length
    maximum = settings.correction_reason_max_length
    if not minimum <= len(reason) <= maximum:
        raise ValidationException(
            f"Correction reason must be between {minimum} and {maximum} characters",
            code="INVALID_CORRECTION_REASON",
            details={"length": len(reason)},
        )
    return reason


class CheckinCorrectionService(BaseService):
    """Applies corrections to already approved check-ins."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.aircraft_repository = RepositoryFactory.create_aircraft_repository(db)
        self.correction_repository = RepositoryFactory.create_base_repository(
            db, BookingCorrection
        )
        self.clock = clock

    @BaseService.measure_operation("correct_checkin")
    def correct_checkin(
        self, ctx: AuthContext, booking_id: str, data: CheckinCorrectionRequest
    ) -> CheckinCorrectionResult:
        """
        Revise the end readings of an approved booking.

        Raises:
            ForbiddenException: caller is not staff
            ValidationException: reason missing or out of bounds
            NotFoundException: booking or aircraft missing
            InvariantViolationException: booking not approved, or a corrected delta is not positive
        """
        if not ctx.can_approve:
            raise ForbiddenException("Only staff can correct check-ins", code="FORBIDDEN")
        reason = validate_correction_reason(data.correction_reason)

        now = self.clock()
        with self.transaction():
            booking = self.booking_repository.get_for_update(booking_id, tenant_id=ctx.tenant_id)
            if booking is None:
                raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
            if not booking.is_approved or booking.applied_aircraft_delta is None:
                raise InvariantViolationException(
                    "Only approved check-ins can be corrected",
                    code="CHECKIN_NOT_APPROVED",
                    details={"booking_id": booking.id, "status": booking.status},
                )

            aircraft_id = booking.checked_out_aircraft_id or booking.aircraft_id
            aircraft = self.aircraft_repository.get_for_update(aircraft_id, tenant_id=ctx.tenant_id)
            if aircraft is None:
                raise NotFoundException(
                    "Aircraft not found",
                    code="AIRCRAFT_NOT_FOUND",
                    details={"aircraft_id": aircraft_id},
                )

            previous = MeterReadings.from_booking(booking)
            readings = previous.with_end_readings(
                hobbs_end=data.hobbs_end,
                tach_end=data.tach_end,
                airswitch_end=data.airswitch_end,
            )
            if booking.applied_total_time_method:
                method = TotalTimeMethod(booking.applied_total_time_method)
            else:
                method = resolve_total_time_method(aircraft, booking.billing_basis)
            plan = plan_correction(readings, method, booking.applied_aircraft_delta)
            flight_delta = (
                calculate_flight_delta(readings, booking.billing_basis)
                if booking.billing_basis
                else booking.flight_time
            )

            is_most_recent = not self.booking_repository.has_later_approved_booking(
                ctx.tenant_id, aircraft.id, booking.start_time, booking.id
            )
            total_time = round_to_two_decimals(
                (aircraft.total_time_in_service or ZERO) + plan.correction_delta
            )
            aircraft_changes = {"total_time_in_service": total_time}
            if is_most_recent:
                for basis in MeterBasis:
                    supplied = getattr(data, f"{basis.value}_end")
                    if supplied is not None:
                        aircraft_changes[f"current_{basis.value}"] = readings.end(basis)
            self.aircraft_repository.update(aircraft, **aircraft_changes)

            flight_times = flight_times_by_basis(readings)
            total_hours_end = (
                round_to_two_decimals(booking.total_hours_end + plan.correction_delta)
                if booking.total_hours_end is not None
                else None
            )
            self.booking_repository.update(
                booking,
                hobbs_end=readings.hobbs_end,
                tach_end=readings.tach_end,
                airswitch_end=readings.airswitch_end,
                flight_time_hobbs=flight_times[MeterBasis.HOBBS],
                flight_time_tach=flight_times[MeterBasis.TACH],
                flight_time_airswitch=flight_times[MeterBasis.AIRSWITCH],
                flight_time=flight_delta,
                applied_total_time_method=method.value,
                applied_aircraft_delta=plan.new_applied_delta,
                total_hours_end=total_hours_end,
                corrected_at=now,
                corrected_by=ctx.user_id,
                correction_delta=plan.correction_delta,
                correction_reason=reason,
            )

            self.correction_repository.create(
                tenant_id=ctx.tenant_id,
                booking_id=booking.id,
                aircraft_id=aircraft.id,
                old_hobbs_end=previous.hobbs_end,
                new_hobbs_end=readings.hobbs_end,
                old_tach_end=previous.tach_end,
                new_tach_end=readings.tach_end,
                old_airswitch_end=previous.airswitch_end,
                new_airswitch_end=readings.airswitch_end,
                old_applied_delta=plan.old_applied_delta,
                new_applied_delta=plan.new_applied_delta,
                correction_delta=plan.correction_delta,
                updated_current_meters=is_most_recent,
                reason=reason,
                corrected_by=ctx.user_id,
                created_at=now,
            )

        prometheus_metrics.inc_checkin_correction(is_most_recent)
        self.log_operation(
            "correct_checkin",
            booking_id=booking.id,
            tenant_id=ctx.tenant_id,
            actor=ctx.user_id,
            correction_delta=str(plan.correction_delta),
            updated_current_meters=is_most_recent,
        )
        return CheckinCorrectionResult(
            booking_id=booking.id,
            correction_delta=plan.correction_delta,
            new_applied_delta=plan.new_applied_delta,
            aircraft_total_time_in_service=total_time,
            updated_current_meters=is_most_recent,
        )
