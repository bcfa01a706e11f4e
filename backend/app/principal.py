"""Authenticated caller context threaded into every service call."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.enums import RoleName


@dataclass(frozen=True)
class AuthContext:
    """Who is acting, in which tenant, with which role."""

    user_id: str
    role: RoleName
    tenant_id: str

    @property
    def is_staff(self) -> bool:
        return self.role.is_staff

    @property
    def can_approve(self) -> bool:
        return self.role.can_approve

    @property
    def can_delete(self) -> bool:
        return self.role.can_delete

    def owns(self, user_id: str | None) -> bool:
        return user_id is not None and user_id == self.user_id
