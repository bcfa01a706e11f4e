# backend/app/schemas/booking.py
"""
Booking schemas for the flight school booking engine.

Request instants are ISO-8601 with an offset; naive values are read as UTC.
Every instant is normalized to UTC before it reaches a service.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from ..core.timezone_utils import ensure_utc
from ..models.booking import BookingStatus, BookingType
from ._strict_base import StrictModel, StrictRequestModel
from .base import Amount, Money


def _validate_range(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and end <= start:
        raise ValueError("end_time must be after start_time")


class _TimeRangeRequest(StrictRequestModel):
    @field_validator("start_time", "end_time", mode="after", check_fields=False)
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_range(self) -> "_TimeRangeRequest":
        _validate_range(getattr(self, "start_time", None), getattr(self, "end_time", None))
        return self


class BookingCreate(_TimeRangeRequest):
    """
    Create a booking.

    Non-staff callers may only book themselves and may not request
    ``confirmed``; those rules are enforced by the service.
    """

    start_time: datetime = Field(..., description="Start instant (UTC)")
    end_time: datetime = Field(..., description="End instant (UTC)")
    aircraft_id: Optional[str] = None
    instructor_id: Optional[str] = None
    user_id: Optional[str] = None
    flight_type_id: Optional[str] = None
    lesson_id: Optional[str] = None
    booking_type: BookingType = BookingType.FLIGHT
    purpose: str = Field(..., min_length=1, max_length=1000)
    remarks: Optional[str] = Field(None, max_length=2000)
    status: Optional[Literal["unconfirmed", "confirmed"]] = None


class BookingReschedule(_TimeRangeRequest):
    """Partial update; only fields present in the payload change."""

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    aircraft_id: Optional[str] = None
    instructor_id: Optional[str] = None
    user_id: Optional[str] = None
    flight_type_id: Optional[str] = None
    lesson_id: Optional[str] = None
    purpose: Optional[str] = Field(None, min_length=1, max_length=1000)
    remarks: Optional[str] = Field(None, max_length=2000)


class TrialBookingCreate(_TimeRangeRequest):
    """Trial flight for a guest who may not be a member yet."""

    start_time: datetime
    end_time: datetime
    aircraft_id: Optional[str] = None
    instructor_id: str
    flight_type_id: Optional[str] = None
    lesson_id: Optional[str] = None
    guest_first_name: str = Field(..., min_length=1, max_length=100)
    guest_last_name: str = Field(..., min_length=1, max_length=100)
    guest_email: EmailStr
    guest_phone: Optional[str] = Field(None, max_length=40)
    voucher_number: Optional[str] = Field(None, max_length=100)
    purpose: str = Field("Trial flight", min_length=1, max_length=1000)
    remarks: Optional[str] = Field(None, max_length=2000)
    status: Optional[Literal["unconfirmed", "confirmed"]] = None


class BriefingRequest(StrictRequestModel):
    briefing_completed: bool = True


class CheckoutRequest(StrictRequestModel):
    """
    Authorize departure.

    The aircraft and instructor default to the booking's own; whichever are
    used are frozen into the checkout snapshot.
    """

    authorization_completed: bool
    checked_out_aircraft_id: Optional[str] = None
    checked_out_instructor_id: Optional[str] = None
    hobbs_start: Optional[Amount] = None
    tach_start: Optional[Amount] = None
    airswitch_start: Optional[Amount] = None
    eta: Optional[datetime] = None
    fuel_on_board: Optional[int] = Field(None, ge=0)
    route: Optional[str] = Field(None, max_length=1000)
    passengers: Optional[str] = Field(None, max_length=1000)
    flight_remarks: Optional[str] = Field(None, max_length=2000)
    briefing_completed: Optional[bool] = None

    @field_validator("eta", mode="after")
    @classmethod
    def _eta_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class CancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class AvailabilityResponse(StrictModel):
    start_time: datetime
    end_time: datetime
    unavailable_aircraft_ids: List[str]
    unavailable_instructor_ids: List[str]


class BookingResponse(StrictModel):
    """Booking as returned by every booking endpoint."""

    id: str
    tenant_id: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    booking_type: BookingType
    aircraft_id: Optional[str] = None
    instructor_id: Optional[str] = None
    user_id: Optional[str] = None
    flight_type_id: Optional[str] = None
    lesson_id: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    voucher_number: Optional[str] = None

    briefing_completed: bool = False
    authorization_completed: bool = False
    checked_out_aircraft_id: Optional[str] = None
    checked_out_instructor_id: Optional[str] = None
    checked_out_at: Optional[datetime] = None
    eta: Optional[datetime] = None
    fuel_on_board: Optional[int] = None
    route: Optional[str] = None
    passengers: Optional[str] = None
    flight_remarks: Optional[str] = None

    hobbs_start: Optional[Money] = None
    hobbs_end: Optional[Money] = None
    tach_start: Optional[Money] = None
    tach_end: Optional[Money] = None
    airswitch_start: Optional[Money] = None
    airswitch_end: Optional[Money] = None
    flight_time: Optional[Money] = None
    billing_basis: Optional[str] = None
    billing_hours: Optional[Money] = None
    applied_total_time_method: Optional[str] = None
    applied_aircraft_delta: Optional[Money] = None
    checkin_invoice_id: Optional[str] = None
    checkin_approved_at: Optional[datetime] = None
    correction_delta: Optional[Money] = None
    corrected_at: Optional[datetime] = None

    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
