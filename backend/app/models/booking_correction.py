# backend/app/models/booking_correction.py
"""Audit trail of post-approval meter corrections."""

from sqlalchemy import Boolean, Column, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class BookingCorrection(Base):
    """One correction applied to an approved booking. Rows are never updated."""

    __tablename__ = "booking_corrections"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    aircraft_id = Column(String(26), ForeignKey("aircraft.id"), nullable=False)

    old_hobbs_end = Column(Numeric(12, 2), nullable=True)
    new_hobbs_end = Column(Numeric(12, 2), nullable=True)
    old_tach_end = Column(Numeric(12, 2), nullable=True)
    new_tach_end = Column(Numeric(12, 2), nullable=True)
    old_airswitch_end = Column(Numeric(12, 2), nullable=True)
    new_airswitch_end = Column(Numeric(12, 2), nullable=True)

    old_applied_delta = Column(Numeric(12, 2), nullable=False)
    new_applied_delta = Column(Numeric(12, 2), nullable=False)
    correction_delta = Column(Numeric(12, 2), nullable=False)
    updated_current_meters = Column(Boolean, nullable=False, default=False)

    reason = Column(Text, nullable=False)
    corrected_by = Column(String(26), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    booking = relationship("Booking", back_populates="corrections")
