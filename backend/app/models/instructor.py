# backend/app/models/instructor.py
"""
Instructor model.

An instructor extends a tenant user with the flag that decides whether they
can be put on a booking at all. Weekly availability lives in roster rules.
"""

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class Instructor(Base):
    """Flight instructor attached to a tenant user."""

    __tablename__ = "instructors"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    is_actively_instructing = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    user = relationship("User", lazy="joined")
    roster_rules = relationship("RosterRule", back_populates="instructor")

    def __repr__(self) -> str:
        return f"<Instructor {self.id}: user={self.user_id} active={self.is_actively_instructing}>"
