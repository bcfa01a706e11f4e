# backend/app/services/checkin_approval_service.py
"""
Check-in approval: flying -> complete.

One transaction turns a flying booking into a completed one, creates its
invoice and lines, and moves the aircraft's total time in service. The
booking and aircraft rows are locked for the duration, and the aircraft's
version column rejects a concurrent writer that slipped past the lock.
Nothing is written unless every step succeeds.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AlreadyApprovedException,
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..models.aircraft import Aircraft, MeterBasis
from ..models.booking import Booking, BookingStatus
from ..models.flight_type import FlightType
from ..models.invoice import Invoice, InvoiceItem, InvoiceStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import AuthContext
from ..repositories import RepositoryFactory
from ..schemas.checkin import CheckinApprovalRequest, CheckinItem
from .base import BaseService
from .invoice_calculator import (
    ZERO,
    calculate_invoice_totals,
    calculate_item_amounts,
    round_to_two_decimals,
)
from .meter_reconciliation import (
    MeterReadings,
    calculate_applied_delta,
    calculate_flight_delta,
    flight_times_by_basis,
    parse_billing_basis,
    resolve_total_time_method,
)

logger = logging.getLogger(__name__)

DEFAULT_INVOICE_NOTES = "Auto-generated from booking check-in."


@dataclass(frozen=True)
class CheckinApprovalResult:
    booking_id: str
    invoice: Invoice
    applied_aircraft_delta: Decimal
    total_hours_start: Decimal
    total_hours_end: Decimal


def _pick(supplied: Optional[Decimal], recorded: Optional[Decimal]) -> Optional[Decimal]:
    return supplied if supplied is not None else recorded


def build_invoice_items(
    items: List[CheckinItem], default_tax_rate: Optional[Decimal]
) -> List[InvoiceItem]:
    """Invoice lines with derived amounts; a line without a tax rate inherits the request's."""
    lines = []
    for position, item in enumerate(items):
        tax_rate = _pick(item.tax_rate, default_tax_rate)
        tax_rate = tax_rate if tax_rate is not None else ZERO
        amounts = calculate_item_amounts(item.quantity, item.unit_price, tax_rate)
        lines.append(
            InvoiceItem(
                position=position,
                chargeable_id=item.chargeable_id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=tax_rate,
                rate_inclusive=amounts.rate_inclusive,
                amount=amounts.amount,
                tax_amount=amounts.tax_amount,
                line_total=amounts.line_total,
                notes=item.notes,
            )
        )
    return lines


class CheckinApprovalService(BaseService):
    """Approves booking check-ins and issues their invoices."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.aircraft_repository = RepositoryFactory.create_aircraft_repository(db)
        self.instructor_repository = RepositoryFactory.create_instructor_repository(db)
        self.invoice_repository = RepositoryFactory.create_invoice_repository(db)
        self.flight_type_repository = RepositoryFactory.create_base_repository(db, FlightType)
        self.clock = clock

    def _lock_booking(self, ctx: AuthContext, booking_id: str) -> Booking:
        booking = self.booking_repository.get_for_update(booking_id, tenant_id=ctx.tenant_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _lock_aircraft(self, ctx: AuthContext, aircraft_id: str) -> Aircraft:
        aircraft = self.aircraft_repository.get_for_update(aircraft_id, tenant_id=ctx.tenant_id)
        if aircraft is None:
            raise NotFoundException(
                "Aircraft not found",
                code="AIRCRAFT_NOT_FOUND",
                details={"aircraft_id": aircraft_id},
            )
        return aircraft

    def _check_snapshot(self, booking: Booking, data: CheckinApprovalRequest) -> None:
        if (
            booking.checked_out_aircraft_id
            and booking.checked_out_aircraft_id != data.checked_out_aircraft_id
        ):
            raise ValidationException(
                "Aircraft does not match the aircraft checked out",
                code="CHECKOUT_AIRCRAFT_MISMATCH",
                details={
                    "checked_out_aircraft_id": booking.checked_out_aircraft_id,
                    "requested": data.checked_out_aircraft_id,
                },
            )
        if (
            data.checked_out_instructor_id
            and booking.checked_out_instructor_id
            and booking.checked_out_instructor_id != data.checked_out_instructor_id
        ):
            raise ValidationException(
                "Instructor does not match the instructor checked out",
                code="CHECKOUT_INSTRUCTOR_MISMATCH",
                details={
                    "checked_out_instructor_id": booking.checked_out_instructor_id,
                    "requested": data.checked_out_instructor_id,
                },
            )

    @BaseService.measure_operation("approve_checkin")
    def approve_checkin(
        self, ctx: AuthContext, booking_id: str, data: CheckinApprovalRequest
    ) -> CheckinApprovalResult:
        """
        Complete a flying booking and invoice it.

        Raises:
            ForbiddenException: caller is not staff
            NotFoundException: booking, aircraft, instructor or flight type missing
            AlreadyApprovedException: the booking already has its invoice
            InvariantViolationException: booking is not flying, or a meter delta is not positive
            ValidationException: readings or snapshot do not match the request
        """
        if not ctx.can_approve:
            raise ForbiddenException("Only staff can approve check-ins", code="FORBIDDEN")

        now = self.clock()
        with self.transaction():
            booking = self._lock_booking(ctx, booking_id)
            if booking.checkin_invoice_id or self.invoice_repository.count_for_booking(booking.id):
                raise AlreadyApprovedException(booking.id, booking.checkin_invoice_id)
            if booking.status != BookingStatus.FLYING.value:
                raise InvariantViolationException(
                    f"Only flying bookings can be checked in (status is {booking.status})",
                    code="INVALID_TRANSITION",
                    details={"booking_id": booking.id, "from": booking.status, "to": "complete"},
                )
            self._check_snapshot(booking, data)

            aircraft = self._lock_aircraft(ctx, data.checked_out_aircraft_id)
            if data.checked_out_instructor_id and (
                self.instructor_repository.get_by_id(
                    data.checked_out_instructor_id, tenant_id=ctx.tenant_id
                )
                is None
            ):
                raise NotFoundException(
                    "Instructor not found",
                    code="INSTRUCTOR_NOT_FOUND",
                    details={"instructor_id": data.checked_out_instructor_id},
                )
            flight_type = self.flight_type_repository.get_by_id(
                data.flight_type_id, tenant_id=ctx.tenant_id
            )
            if flight_type is None or not flight_type.is_bookable:
                raise NotFoundException(
                    "Flight type not found or inactive",
                    code="FLIGHT_TYPE_NOT_FOUND",
                    details={"flight_type_id": data.flight_type_id},
                )

            readings = MeterReadings.build(
                hobbs_start=_pick(data.hobbs_start, booking.hobbs_start),
                hobbs_end=data.hobbs_end,
                tach_start=_pick(data.tach_start, booking.tach_start),
                tach_end=data.tach_end,
                airswitch_start=_pick(data.airswitch_start, booking.airswitch_start),
                airswitch_end=data.airswitch_end,
            )
            basis = parse_billing_basis(data.billing_basis)
            flight_delta = calculate_flight_delta(readings, basis.value)
            method = resolve_total_time_method(aircraft, basis.value)
            applied_delta = calculate_applied_delta(readings, method)

            lines = build_invoice_items(data.items, data.tax_rate)
            totals = calculate_invoice_totals(lines)

            total_hours_start = round_to_two_decimals(aircraft.total_time_in_service or ZERO)
            total_hours_end = round_to_two_decimals(total_hours_start + applied_delta)
            is_most_recent = not self.booking_repository.has_later_approved_booking(
                ctx.tenant_id, aircraft.id, booking.start_time, booking.id
            )

            invoice = self.invoice_repository.create(
                tenant_id=ctx.tenant_id,
                user_id=booking.user_id,
                booking_id=booking.id,
                invoice_number=self.invoice_repository.next_invoice_number(
                    ctx.tenant_id, settings.invoice_number_prefix
                ),
                status=InvoiceStatus.PENDING.value,
                reference=data.reference or f"Booking {booking.id} check-in",
                notes=data.notes or DEFAULT_INVOICE_NOTES,
                issue_date=now,
                due_date=data.due_date or now + timedelta(days=settings.invoice_due_days),
                tax_rate=data.tax_rate,
                subtotal=totals.subtotal,
                tax_total=totals.tax_total,
                total_amount=totals.total_amount,
                total_paid=ZERO,
                balance_due=totals.total_amount,
            )
            invoice.items.extend(lines)
            self.invoice_repository.flush()

            flight_times = flight_times_by_basis(readings)
            self.booking_repository.update(
                booking,
                status=BookingStatus.COMPLETE.value,
                flight_type_id=flight_type.id,
                checked_out_aircraft_id=aircraft.id,
                checked_out_instructor_id=data.checked_out_instructor_id
                or booking.checked_out_instructor_id,
                hobbs_start=readings.hobbs_start,
                hobbs_end=readings.hobbs_end,
                tach_start=readings.tach_start,
                tach_end=readings.tach_end,
                airswitch_start=readings.airswitch_start,
                airswitch_end=readings.airswitch_end,
                solo_end_hobbs=data.solo_end_hobbs,
                solo_end_tach=data.solo_end_tach,
                dual_time=data.dual_time,
                solo_time=data.solo_time,
                flight_time_hobbs=flight_times[MeterBasis.HOBBS],
                flight_time_tach=flight_times[MeterBasis.TACH],
                flight_time_airswitch=flight_times[MeterBasis.AIRSWITCH],
                flight_time=flight_delta,
                billing_basis=basis.value,
                billing_hours=data.billing_hours,
                tax_rate=data.tax_rate,
                applied_total_time_method=method.value,
                applied_aircraft_delta=applied_delta,
                total_hours_start=total_hours_start,
                total_hours_end=total_hours_end,
                checked_in_at=now,
                checked_in_by=ctx.user_id,
                checkin_approved_at=now,
                checkin_approved_by=ctx.user_id,
                checkin_invoice_id=invoice.id,
            )

            aircraft_changes = {"total_time_in_service": total_hours_end}
            if is_most_recent:
                for meter_basis in MeterBasis:
                    end_reading = readings.end(meter_basis)
                    if end_reading is not None:
                        aircraft_changes[f"current_{meter_basis.value}"] = end_reading
            self.aircraft_repository.update(aircraft, **aircraft_changes)

        prometheus_metrics.inc_checkin_approved()
        self.log_operation(
            "approve_checkin",
            booking_id=booking.id,
            tenant_id=ctx.tenant_id,
            actor=ctx.user_id,
            invoice_id=invoice.id,
            applied_aircraft_delta=str(applied_delta),
            updated_current_meters=is_most_recent,
        )
        return CheckinApprovalResult(
            booking_id=booking.id,
            invoice=invoice,
            applied_aircraft_delta=applied_delta,
            total_hours_start=total_hours_start,
            total_hours_end=total_hours_end,
        )
