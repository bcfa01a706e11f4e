# backend/app/core/enums.py
"""
Core enums for the booking engine.

Roles are a closed set; every permission decision goes through the
capability predicates below instead of comparing role strings.
"""

from enum import Enum


class RoleName(str, Enum):
    """Tenant membership roles."""

    OWNER = "owner"
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    MEMBER = "member"
    STUDENT = "student"

    @property
    def is_staff(self) -> bool:
        """Owners, admins and instructors run the flight line."""
        return self in _STAFF_ROLES

    @property
    def can_approve(self) -> bool:
        """May approve check-ins and apply post-approval corrections."""
        return self in _STAFF_ROLES

    @property
    def can_delete(self) -> bool:
        """May void records outright (owners and admins only)."""
        return self in (RoleName.OWNER, RoleName.ADMIN)


_STAFF_ROLES = frozenset({RoleName.OWNER, RoleName.ADMIN, RoleName.INSTRUCTOR})
