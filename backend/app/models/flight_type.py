# backend/app/models/flight_type.py
"""Flight type and lesson reference data consumed by bookings."""

from sqlalchemy import Boolean, Column, ForeignKey, String, Text
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class FlightType(Base):
    """Kind of flight (dual, solo, trial, ...). Voided types cannot be booked."""

    __tablename__ = "flight_types"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    instruction_type = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    voided_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active) and self.voided_at is None


class Lesson(Base):
    """Syllabus lesson a booking can be attached to."""

    __tablename__ = "lessons"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, server_default=func.now())
