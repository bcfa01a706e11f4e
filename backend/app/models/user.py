# backend/app/models/user.py
"""
User model.

Members, students, instructors and administrators of a tenant are all
users; the ``role`` column carries the tenant membership role used when
the record is read back (the acting caller's role always comes from the
AuthContext, not from this table).
"""

from typing import Optional

from sqlalchemy import Boolean, Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import RoleName
from ..database import Base
from .types import UTCDateTime, generate_ulid


class User(Base):
    """
    Tenant member.

    Attributes:
        id: Primary key (ULID)
        tenant_id: Owning tenant
        email: Lower-cased email, unique within the tenant
        first_name / last_name / phone: Contact details
        role: Membership role (see RoleName)
        is_active: Inactive users cannot be booked
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(40), nullable=True)
    role = Column(String(20), nullable=False, default=RoleName.MEMBER.value)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    tenant = relationship("Tenant")

    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),)

    @property
    def role_name(self) -> Optional[RoleName]:
        try:
            return RoleName(self.role)
        except ValueError:
            return None

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
