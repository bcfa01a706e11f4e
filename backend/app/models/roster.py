# backend/app/models/roster.py
"""
Instructor roster rules.

A roster rule is a recurring weekly window (local wall-clock, tenant zone)
during which an instructor can take trial bookings. Rules are append-only
from the booking engine's point of view; they are voided, never edited.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    SmallInteger,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class RosterRule(Base):
    """
    Weekly availability window.

    Attributes:
        day_of_week: 0 = Sunday ... 6 = Saturday
        start_time / end_time: Local ``HH:MM`` wall-clock bounds
        effective_from / effective_until: Inclusive local date range, open-ended when None
    """

    __tablename__ = "roster_rules"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    instructor_id = Column(String(26), ForeignKey("instructors.id"), nullable=False)
    day_of_week = Column(SmallInteger, nullable=False)
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    effective_from = Column(Date, nullable=False)
    effective_until = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    voided_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    instructor = relationship("Instructor", back_populates="roster_rules")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_roster_rules_day_of_week"),
        Index("ix_roster_rules_instructor_day", "instructor_id", "day_of_week"),
    )

    def __repr__(self) -> str:
        return (
            f"<RosterRule {self.id}: instructor={self.instructor_id} "
            f"dow={self.day_of_week} {self.start_time}-{self.end_time}>"
        )
