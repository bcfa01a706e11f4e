# backend/app/models/booking.py
"""
Booking model for the flight school.

A booking reserves an aircraft and/or instructor for a UTC time range and
walks through the lifecycle unconfirmed -> confirmed -> (briefing) ->
flying -> complete, or ends in cancelled. Checkout fixes a snapshot of the
aircraft and instructor actually flown; check-in approval stores the final
meter readings and links the generated invoice.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from ..core.exceptions import InvariantViolationException
from ..database import Base
from .types import UTCDateTime, generate_ulid

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    BRIEFING = "briefing"
    FLYING = "flying"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETE, BookingStatus.CANCELLED)


class BookingType(str, Enum):
    FLIGHT = "flight"
    GROUNDWORK = "groundwork"
    MAINTENANCE = "maintenance"
    OTHER = "other"


# Statuses that never block a resource.
NON_BLOCKING_STATUSES = frozenset({BookingStatus.CANCELLED.value})

_SNAPSHOT_FIELDS = ("checked_out_aircraft_id", "checked_out_instructor_id", "checked_out_at")


class Booking(Base):
    """
    Tenant-scoped reservation of aircraft/instructor time.

    Start and end are UTC instants with ``start_time < end_time``.
    Checkout snapshot fields can be written once and never change afterwards,
    even if ``aircraft_id``/``instructor_id`` are edited later.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)

    # Resources
    aircraft_id = Column(String(26), ForeignKey("aircraft.id"), nullable=True)
    instructor_id = Column(String(26), ForeignKey("instructors.id"), nullable=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    flight_type_id = Column(String(26), ForeignKey("flight_types.id"), nullable=True)
    lesson_id = Column(String(26), ForeignKey("lessons.id"), nullable=True)

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.UNCONFIRMED.value, index=True)
    booking_type = Column(String(20), nullable=False, default=BookingType.FLIGHT.value)
    purpose = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)
    voucher_number = Column(String(100), nullable=True)

    # Briefing / checkout
    briefing_completed = Column(Boolean, nullable=False, default=False)
    authorization_completed = Column(Boolean, nullable=False, default=False)
    checked_out_aircraft_id = Column(String(26), ForeignKey("aircraft.id"), nullable=True)
    checked_out_instructor_id = Column(String(26), ForeignKey("instructors.id"), nullable=True)
    checked_out_at = Column(UTCDateTime, nullable=True)
    eta = Column(UTCDateTime, nullable=True)
    fuel_on_board = Column(Integer, nullable=True)
    route = Column(Text, nullable=True)
    passengers = Column(Text, nullable=True)
    flight_remarks = Column(Text, nullable=True)

    # Meter readings
    hobbs_start = Column(Numeric(12, 2), nullable=True)
    hobbs_end = Column(Numeric(12, 2), nullable=True)
    tach_start = Column(Numeric(12, 2), nullable=True)
    tach_end = Column(Numeric(12, 2), nullable=True)
    airswitch_start = Column(Numeric(12, 2), nullable=True)
    airswitch_end = Column(Numeric(12, 2), nullable=True)
    solo_end_hobbs = Column(Numeric(12, 2), nullable=True)
    solo_end_tach = Column(Numeric(12, 2), nullable=True)
    dual_time = Column(Numeric(12, 2), nullable=True)
    solo_time = Column(Numeric(12, 2), nullable=True)
    flight_time_hobbs = Column(Numeric(12, 2), nullable=True)
    flight_time_tach = Column(Numeric(12, 2), nullable=True)
    flight_time_airswitch = Column(Numeric(12, 2), nullable=True)
    flight_time = Column(Numeric(12, 2), nullable=True)

    # Billing
    billing_basis = Column(String(20), nullable=True)
    billing_hours = Column(Numeric(12, 2), nullable=True)
    tax_rate = Column(Numeric(6, 4), nullable=True)

    # Check-in approval
    applied_total_time_method = Column(String(30), nullable=True)
    applied_aircraft_delta = Column(Numeric(12, 2), nullable=True)
    total_hours_start = Column(Numeric(12, 2), nullable=True)
    total_hours_end = Column(Numeric(12, 2), nullable=True)
    checked_in_at = Column(UTCDateTime, nullable=True)
    checked_in_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    checkin_approved_at = Column(UTCDateTime, nullable=True)
    checkin_approved_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    checkin_invoice_id = Column(
        String(26), ForeignKey("invoices.id", use_alter=True), nullable=True, unique=True
    )

    # Corrections
    corrected_at = Column(UTCDateTime, nullable=True)
    corrected_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    correction_delta = Column(Numeric(12, 2), nullable=True)
    correction_reason = Column(Text, nullable=True)

    # Cancellation
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancelled_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, onupdate=func.now())

    aircraft = relationship("Aircraft", foreign_keys=[aircraft_id])
    instructor = relationship("Instructor", foreign_keys=[instructor_id])
    user = relationship("User", foreign_keys=[user_id])
    flight_type = relationship("FlightType")
    lesson = relationship("Lesson")
    checkin_invoice = relationship("Invoice", foreign_keys=[checkin_invoice_id], post_update=True)
    corrections = relationship(
        "BookingCorrection",
        back_populates="booking",
        order_by="BookingCorrection.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        CheckConstraint(
            "status IN ('unconfirmed', 'confirmed', 'briefing', 'flying', 'complete', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "booking_type IN ('flight', 'groundwork', 'maintenance', 'other')",
            name="ck_bookings_booking_type",
        ),
        Index("ix_bookings_tenant_range", "tenant_id", "start_time", "end_time"),
        Index("ix_bookings_aircraft_start", "aircraft_id", "start_time"),
    )

    @validates(*_SNAPSHOT_FIELDS)
    def _validate_snapshot(self, key: str, value: Any) -> Any:
        current = self.__dict__.get(key)
        if current is not None and value != current:
            raise InvariantViolationException(
                "Checkout snapshot is immutable once set",
                code="CHECKOUT_SNAPSHOT_IMMUTABLE",
                details={"booking_id": self.id, "field": key},
            )
        return value

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_approved(self) -> bool:
        return self.checkin_invoice_id is not None

    def cancel(
        self,
        cancelled_by_user_id: str,
        reason: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        """Cancel this booking."""
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = at or datetime.now(timezone.utc)
        self.cancelled_by = cancelled_by_user_id
        self.cancellation_reason = reason
        logger.info(f"Booking {self.id} cancelled by user {cancelled_by_user_id}")

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: aircraft={self.aircraft_id}, "
            f"instructor={self.instructor_id}, user={self.user_id}, "
            f"{self.start_time}-{self.end_time}, status={self.status}>"
        )


# Store-level double-booking guard; the overlap predicate matches
# AvailabilityChecker: half-open ranges, cancelled bookings ignored.
_BTREE_GIST = DDL("CREATE EXTENSION IF NOT EXISTS btree_gist")
_AIRCRAFT_EXCLUSION = DDL(
    "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_aircraft_overlap "
    "EXCLUDE USING gist (aircraft_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
    "WHERE (status <> 'cancelled' AND aircraft_id IS NOT NULL)"
)
_INSTRUCTOR_EXCLUSION = DDL(
    "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_instructor_overlap "
    "EXCLUDE USING gist (instructor_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
    "WHERE (status <> 'cancelled' AND instructor_id IS NOT NULL)"
)

for _ddl in (_BTREE_GIST, _AIRCRAFT_EXCLUSION, _INSTRUCTOR_EXCLUSION):
    event.listen(Booking.__table__, "after_create", _ddl.execute_if(dialect="postgresql"))

EXCLUSION_CONSTRAINT_NAMES = ("ex_bookings_aircraft_overlap", "ex_bookings_instructor_overlap")
