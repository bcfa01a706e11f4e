# backend/app/schemas/__init__.py
"""
Pydantic schemas for the booking engine.

Request models forbid unknown fields; response models read straight from
ORM rows. Money and meter values travel as ``Money`` (Decimal inside,
JSON number outside).
"""

from .base import Money
from .booking import (
    AvailabilityResponse,
    BookingCreate,
    BookingReschedule,
    BookingResponse,
    BriefingRequest,
    CancelRequest,
    CheckoutRequest,
    TrialBookingCreate,
)
from .checkin import (
    CheckinApprovalRequest,
    CheckinApprovalResponse,
    CheckinCorrectionRequest,
    CheckinCorrectionResponse,
    CheckinItem,
    InvoiceSummary,
)

__all__ = [
    "AvailabilityResponse",
    "BookingCreate",
    "BookingReschedule",
    "BookingResponse",
    "BriefingRequest",
    "CancelRequest",
    "CheckinApprovalRequest",
    "CheckinApprovalResponse",
    "CheckinCorrectionRequest",
    "CheckinCorrectionResponse",
    "CheckinItem",
    "CheckoutRequest",
    "InvoiceSummary",
    "Money",
    "TrialBookingCreate",
]
