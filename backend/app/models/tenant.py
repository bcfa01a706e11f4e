# backend/app/models/tenant.py
"""
Tenant model.

A tenant is one flight school. Every other row in the system is scoped to
exactly one tenant, and the tenant's IANA timezone is the zone in which
roster windows and local calendar days are interpreted.
"""

from sqlalchemy import Column, String
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class Tenant(Base):
    """A flight school operating its own fleet, staff and members."""

    __tablename__ = "tenants"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Tenant {self.id}: {self.name} ({self.timezone})>"
