# backend/app/services/booking_service.py
"""
Booking Service for the flight school booking engine.

Handles booking creation and the status state machine:

    create -> unconfirmed (or confirmed by staff)
    unconfirmed | briefing -> confirmed        staff only
    confirmed -> briefing                       staff only
    confirmed -> flying (checkout)              authorization flag required
    any status except complete -> cancelled     own booking or staff
    flying -> complete                          check-in approval (see CheckinApprovalService)

Anything else raises InvariantViolationException; a role that may not
perform a transition gets ForbiddenException. Neither leaves side effects.
"""

from datetime import datetime
import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..models.aircraft import Aircraft
from ..models.booking import Booking, BookingStatus, BookingType
from ..models.flight_type import FlightType, Lesson
from ..models.instructor import Instructor
from ..models.tenant import Tenant
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import AuthContext
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..schemas.booking import (
    BookingCreate,
    BookingReschedule,
    BriefingRequest,
    CancelRequest,
    CheckoutRequest,
    TrialBookingCreate,
)
from .base import BaseService
from .conflict_checker import AvailabilityChecker

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_NOT_NULLABLE_ON_RESCHEDULE = frozenset({"start_time", "end_time", "purpose"})

_RESCHEDULABLE_FIELDS = (
    "start_time",
    "end_time",
    "aircraft_id",
    "instructor_id",
    "user_id",
    "flight_type_id",
    "lesson_id",
    "purpose",
    "remarks",
)


def _invalid_transition(booking: Booking, target: BookingStatus) -> InvariantViolationException:
    return InvariantViolationException(
        f"Cannot move booking from {booking.status} to {target.value}",
        code="INVALID_TRANSITION",
        details={"booking_id": booking.id, "from": booking.status, "to": target.value},
    )


def _require_staff(ctx: AuthContext, action: str) -> None:
    if not ctx.is_staff:
        raise ForbiddenException(f"Only staff can {action}", code="STAFF_ONLY")


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Every public method takes the caller's AuthContext explicitly and is
    scoped to ``ctx.tenant_id``.
    """

    def __init__(
        self,
        db: Session,
        availability_checker: Optional[AvailabilityChecker] = None,
        repository: Optional[BookingRepository] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            availability_checker: Optional availability checker
            repository: Optional BookingRepository instance
            clock: Source of "now" (UTC)
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.availability = availability_checker or AvailabilityChecker(db)
        self.aircraft_repository = RepositoryFactory.create_aircraft_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.instructor_repository = RepositoryFactory.create_instructor_repository(db)
        self.flight_type_repository = RepositoryFactory.create_base_repository(db, FlightType)
        self.lesson_repository = RepositoryFactory.create_base_repository(db, Lesson)
        self.tenant_repository = RepositoryFactory.create_base_repository(db, Tenant)
        self.clock = clock

    # Lookups

    def tenant_timezone(self, tenant_id: str) -> str:
        tenant = self.tenant_repository.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundException("Tenant not found", code="TENANT_NOT_FOUND")
        return tenant.timezone or settings.default_timezone

    def _load_booking(self, ctx: AuthContext, booking_id: str, lock: bool = False) -> Booking:
        if lock:
            booking = self.repository.get_for_update(booking_id, tenant_id=ctx.tenant_id)
        else:
            booking = self.repository.get_booking_with_details(booking_id, ctx.tenant_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _require_aircraft(self, tenant_id: str, aircraft_id: str) -> Aircraft:
        aircraft = self.aircraft_repository.get_on_line(aircraft_id, tenant_id)
        if aircraft is None:
            raise NotFoundException(
                "Aircraft not found or not on line",
                code="AIRCRAFT_NOT_FOUND",
                details={"aircraft_id": aircraft_id},
            )
        return aircraft

    def _require_instructor(self, tenant_id: str, instructor_id: str) -> Instructor:
        instructor = self.instructor_repository.get_active_instructor(instructor_id, tenant_id)
        if instructor is None:
            raise NotFoundException(
                "Instructor not found or not actively instructing",
                code="INSTRUCTOR_NOT_FOUND",
                details={"instructor_id": instructor_id},
            )
        return instructor

    def _require_member(self, tenant_id: str, user_id: str) -> User:
        user = self.user_repository.get_active_member(user_id, tenant_id)
        if user is None:
            raise NotFoundException(
                "Member not found or inactive",
                code="MEMBER_NOT_FOUND",
                details={"user_id": user_id},
            )
        return user

    def _require_flight_type(self, tenant_id: str, flight_type_id: str) -> FlightType:
        flight_type = self.flight_type_repository.get_by_id(flight_type_id, tenant_id=tenant_id)
        if flight_type is None or not flight_type.is_bookable:
            raise NotFoundException(
                "Flight type not found or inactive",
                code="FLIGHT_TYPE_NOT_FOUND",
                details={"flight_type_id": flight_type_id},
            )
        return flight_type

    def _require_lesson(self, tenant_id: str, lesson_id: str) -> Lesson:
        lesson = self.lesson_repository.get_by_id(lesson_id, tenant_id=tenant_id)
        if lesson is None or not lesson.is_active:
            raise NotFoundException(
                "Lesson not found or inactive",
                code="LESSON_NOT_FOUND",
                details={"lesson_id": lesson_id},
            )
        return lesson

    def validate_references(
        self,
        tenant_id: str,
        aircraft_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        user_id: Optional[str] = None,
        flight_type_id: Optional[str] = None,
        lesson_id: Optional[str] = None,
    ) -> None:
        """
        Check every referenced entity exists in the tenant and is usable.

        The checks are independent reads; they run one after another on the
        request's session.
        """
        if aircraft_id:
            self._require_aircraft(tenant_id, aircraft_id)
        if instructor_id:
            self._require_instructor(tenant_id, instructor_id)
        if user_id:
            self._require_member(tenant_id, user_id)
        if flight_type_id:
            self._require_flight_type(tenant_id, flight_type_id)
        if lesson_id:
            self._require_lesson(tenant_id, lesson_id)

    # Queries

    @BaseService.measure_operation("get_booking")
    def get_booking(self, ctx: AuthContext, booking_id: str) -> Booking:
        booking = self._load_booking(ctx, booking_id)
        if not ctx.is_staff and not ctx.owns(booking.user_id):
            raise ForbiddenException("You can only view your own bookings", code="FORBIDDEN")
        return booking

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(self, ctx: AuthContext, data: BookingCreate) -> Booking:
        """
        Create a booking.

        Args:
            ctx: Caller
            data: Validated booking payload

        Returns:
            The persisted booking

        Raises:
            ForbiddenException: non-staff booking someone else or asking for confirmed
            ValidationException: flight booking without an aircraft
            NotFoundException: a referenced entity is missing or inactive
            BookingConflictException: aircraft or instructor already committed
        """
        if not ctx.is_staff:
            if data.user_id and not ctx.owns(data.user_id):
                raise ForbiddenException(
                    "You can only create bookings for yourself", code="BOOK_FOR_OTHERS_FORBIDDEN"
                )
            if data.status == BookingStatus.CONFIRMED.value:
                raise ForbiddenException(
                    "Only staff can create confirmed bookings", code="CONFIRM_FORBIDDEN"
                )
        user_id = data.user_id or (None if ctx.is_staff else ctx.user_id)
        status = data.status or BookingStatus.UNCONFIRMED.value

        if data.booking_type == BookingType.FLIGHT and not data.aircraft_id:
            raise ValidationException(
                "Flight bookings require an aircraft", code="AIRCRAFT_REQUIRED"
            )

        with self.transaction():
            self.validate_references(
                ctx.tenant_id,
                aircraft_id=data.aircraft_id,
                instructor_id=data.instructor_id,
                user_id=user_id,
                flight_type_id=data.flight_type_id,
                lesson_id=data.lesson_id,
            )
            self.availability.ensure_available(
                ctx.tenant_id,
                data.start_time,
                data.end_time,
                aircraft_id=data.aircraft_id,
                instructor_id=data.instructor_id,
            )
            booking = self.repository.create(
                tenant_id=ctx.tenant_id,
                start_time=data.start_time,
                end_time=data.end_time,
                aircraft_id=data.aircraft_id,
                instructor_id=data.instructor_id,
                user_id=user_id,
                flight_type_id=data.flight_type_id,
                lesson_id=data.lesson_id,
                booking_type=BookingType(data.booking_type).value,
                purpose=data.purpose,
                remarks=data.remarks,
                status=status,
            )

        prometheus_metrics.inc_booking_created(booking.booking_type, "standard")
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            tenant_id=ctx.tenant_id,
            actor=ctx.user_id,
            status=status,
        )
        return booking

    def _find_or_create_guest(self, tenant_id: str, data: TrialBookingCreate) -> User:
        email = str(data.guest_email).strip().lower()
        guest = self.user_repository.find_by_email(tenant_id, email)
        if guest is not None:
            return guest
        guest = self.user_repository.create(
            tenant_id=tenant_id,
            email=email,
            first_name=data.guest_first_name,
            last_name=data.guest_last_name,
            phone=data.guest_phone,
            role=RoleName.STUDENT.value,
            is_active=True,
        )
        self.logger.info(f"Created guest member {guest.id} for trial booking")
        return guest

    @BaseService.measure_operation("create_trial_booking")
    def create_trial_booking(self, ctx: AuthContext, data: TrialBookingCreate) -> Booking:
        """
        Book a trial flight for a guest.

        Staff only. The instructor must be rostered for the whole local
        range in the tenant's timezone; the guest is matched by email or
        created as a student member.
        """
        _require_staff(ctx, "create trial bookings")
        status = data.status or BookingStatus.UNCONFIRMED.value

        with self.transaction():
            tz_name = self.tenant_timezone(ctx.tenant_id)
            self.validate_references(
                ctx.tenant_id,
                aircraft_id=data.aircraft_id,
                instructor_id=data.instructor_id,
                flight_type_id=data.flight_type_id,
                lesson_id=data.lesson_id,
            )
            self.availability.ensure_available(
                ctx.tenant_id,
                data.start_time,
                data.end_time,
                aircraft_id=data.aircraft_id,
                instructor_id=data.instructor_id,
            )
            self.availability.ensure_within_roster(
                ctx.tenant_id, data.instructor_id, data.start_time, data.end_time, tz_name
            )
            guest = self._find_or_create_guest(ctx.tenant_id, data)
            booking = self.repository.create(
                tenant_id=ctx.tenant_id,
                start_time=data.start_time,
                end_time=data.end_time,
                aircraft_id=data.aircraft_id,
                instructor_id=data.instructor_id,
                user_id=guest.id,
                flight_type_id=data.flight_type_id,
                lesson_id=data.lesson_id,
                booking_type=BookingType.FLIGHT.value,
                purpose=data.purpose,
                remarks=data.remarks,
                voucher_number=data.voucher_number,
                status=status,
            )

        prometheus_metrics.inc_booking_created(booking.booking_type, "trial")
        self.log_operation(
            "create_trial_booking",
            booking_id=booking.id,
            tenant_id=ctx.tenant_id,
            actor=ctx.user_id,
            guest_id=booking.user_id,
        )
        return booking

    # Edits

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self, ctx: AuthContext, booking_id: str, data: BookingReschedule
    ) -> Booking:
        """
        Move a booking or swap its resources. Staff only.

        Only fields present in the payload change. The checkout snapshot is
        never touched here.
        """
        _require_staff(ctx, "reschedule bookings")
        changes: dict[str, Any] = {}
        for name in _RESCHEDULABLE_FIELDS:
            if name not in data.model_fields_set:
                continue
            value = getattr(data, name)
            if value is None and name in _NOT_NULLABLE_ON_RESCHEDULE:
                raise ValidationException(
                    f"{name} cannot be cleared", code="FIELD_NOT_NULLABLE", details={"field": name}
                )
            changes[name] = value

        with self.transaction():
            booking = self._load_booking(ctx, booking_id, lock=True)
            if booking.status_enum.is_terminal:
                raise InvariantViolationException(
                    f"Cannot reschedule a {booking.status} booking",
                    code="BOOKING_NOT_EDITABLE",
                    details={"booking_id": booking.id, "status": booking.status},
                )

            start = changes.get("start_time", booking.start_time)
            end = changes.get("end_time", booking.end_time)
            if end <= start:
                raise ValidationException(
                    "End time must be after start time", code="INVALID_RANGE"
                )

            self.validate_references(
                ctx.tenant_id,
                aircraft_id=changes.get("aircraft_id"),
                instructor_id=changes.get("instructor_id"),
                user_id=changes.get("user_id"),
                flight_type_id=changes.get("flight_type_id"),
                lesson_id=changes.get("lesson_id"),
            )
            self.availability.ensure_available(
                ctx.tenant_id,
                start,
                end,
                aircraft_id=changes.get("aircraft_id", booking.aircraft_id),
                instructor_id=changes.get("instructor_id", booking.instructor_id),
                exclude_booking_id=booking.id,
            )
            self.repository.update(booking, **changes)

        self.log_operation(
            "reschedule_booking",
            booking_id=booking.id,
            tenant_id=ctx.tenant_id,
            actor=ctx.user_id,
            fields=sorted(changes),
        )
        return booking

    # Transitions

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, ctx: AuthContext, booking_id: str) -> Booking:
        _require_staff(ctx, "confirm bookings")
        with self.transaction():
            booking = self._load_booking(ctx, booking_id, lock=True)
            if booking.status not in (BookingStatus.UNCONFIRMED.value, BookingStatus.BRIEFING.value):
                raise _invalid_transition(booking, BookingStatus.CONFIRMED)
            self.repository.update(booking, status=BookingStatus.CONFIRMED.value)

        self.log_operation("confirm_booking", booking_id=booking.id, actor=ctx.user_id)
        return booking

    @BaseService.measure_operation("start_briefing")
    def start_briefing(
        self, ctx: AuthContext, booking_id: str, data: Optional[BriefingRequest] = None
    ) -> Booking:
        _require_staff(ctx, "brief bookings")
        briefing_completed = data.briefing_completed if data is not None else True
        with self.transaction():
            booking = self._load_booking(ctx, booking_id, lock=True)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise _invalid_transition(booking, BookingStatus.BRIEFING)
            self.repository.update(
                booking,
                status=BookingStatus.BRIEFING.value,
                briefing_completed=briefing_completed,
            )

        self.log_operation("start_briefing", booking_id=booking.id, actor=ctx.user_id)
        return booking

    @BaseService.measure_operation("checkout_booking")
    def checkout_booking(self, ctx: AuthContext, booking_id: str, data: CheckoutRequest) -> Booking:
        """
        Authorize departure: confirmed -> flying.

        Freezes the aircraft and instructor actually flown into the checkout
        snapshot and stamps ``checked_out_at``. Start readings default to the
        aircraft's current meters.
        """
        with self.transaction():
            booking = self._load_booking(ctx, booking_id, lock=True)
            if not ctx.is_staff and not ctx.owns(booking.user_id):
                raise ForbiddenException(
                    "You can only check out your own bookings", code="FORBIDDEN"
                )
            if booking.status != BookingStatus.CONFIRMED.value:
                raise _invalid_transition(booking, BookingStatus.FLYING)
            if not data.authorization_completed:
                raise InvariantViolationException(
                    "Flight authorization must be completed before checkout",
                    code="AUTHORIZATION_REQUIRED",
                    details={"booking_id": booking.id},
                )

            aircraft_id = data.checked_out_aircraft_id or booking.aircraft_id
            if not aircraft_id:
                raise ValidationException(
                    "An aircraft is required to check out", code="AIRCRAFT_REQUIRED"
                )
            aircraft = self._require_aircraft(ctx.tenant_id, aircraft_id)
            instructor_id = data.checked_out_instructor_id or booking.instructor_id
            if instructor_id:
                self._require_instructor(ctx.tenant_id, instructor_id)

            changes: dict[str, Any] = {
                "status": BookingStatus.FLYING.value,
                "authorization_completed": True,
                "checked_out_aircraft_id": aircraft.id,
                "checked_out_instructor_id": instructor_id,
                "checked_out_at": self.clock(),
                "hobbs_start": data.hobbs_start
                if data.hobbs_start is not None
                else aircraft.current_hobbs,
                "tach_start": data.tach_start if data.tach_start is not None else aircraft.current_tach,
                "airswitch_start": data.airswitch_start
                if data.airswitch_start is not None
                else aircraft.current_airswitch,
            }
            for name in ("eta", "fuel_on_board", "route", "passengers", "flight_remarks"):
                value = getattr(data, name)
                if value is not None:
                    changes[name] = value
            if data.briefing_completed is not None:
                changes["briefing_completed"] = data.briefing_completed

            self.repository.update(booking, **changes)

        self.log_operation(
            "checkout_booking",
            booking_id=booking.id,
            actor=ctx.user_id,
            aircraft_id=booking.checked_out_aircraft_id,
            instructor_id=booking.checked_out_instructor_id,
        )
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, ctx: AuthContext, booking_id: str, data: Optional[CancelRequest] = None
    ) -> Booking:
        """Cancel any non-complete booking; members may cancel only their own."""
        reason = data.reason if data is not None else None
        with self.transaction():
            booking = self._load_booking(ctx, booking_id, lock=True)
            if not ctx.is_staff and not ctx.owns(booking.user_id):
                raise ForbiddenException(
                    "You can only cancel your own bookings", code="FORBIDDEN"
                )
            if booking.status in (BookingStatus.COMPLETE.value, BookingStatus.CANCELLED.value):
                raise _invalid_transition(booking, BookingStatus.CANCELLED)
            booking.cancel(ctx.user_id, reason, at=self.clock())
            self.repository.flush()

        self.log_operation(
            "cancel_booking", booking_id=booking.id, actor=ctx.user_id, reason=reason
        )
        return booking
