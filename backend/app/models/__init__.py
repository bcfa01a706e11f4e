"""
Database models for the flight school booking engine.

This module exports all SQLAlchemy models used in the application:
- Tenancy and people (Tenant, User, Instructor)
- Fleet and reference data (Aircraft, FlightType, Lesson)
- Instructor rosters (RosterRule)
- Bookings and their correction audit trail
- Invoicing (Invoice, InvoiceItem)
"""

from .aircraft import Aircraft, MeterBasis, TotalTimeMethod
from .booking import NON_BLOCKING_STATUSES, Booking, BookingStatus, BookingType
from .booking_correction import BookingCorrection
from .flight_type import FlightType, Lesson
from .instructor import Instructor
from .invoice import Invoice, InvoiceItem, InvoiceStatus
from .roster import RosterRule
from .tenant import Tenant
from .user import User

__all__ = [
    "Aircraft",
    "Booking",
    "BookingCorrection",
    "BookingStatus",
    "BookingType",
    "FlightType",
    "Instructor",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Lesson",
    "MeterBasis",
    "NON_BLOCKING_STATUSES",
    "RosterRule",
    "Tenant",
    "TotalTimeMethod",
    "User",
]
