# backend/app/api/dependencies/auth.py
"""
Authentication dependencies.

Identity is established upstream (the gateway terminates sessions and
claims) and forwarded on every request:

    X-User-Id     caller's user id
    X-User-Role   owner | admin | instructor | member | student
    X-Tenant-Id   tenant the request acts in

The result is an explicit AuthContext handed to every service call. When
``settings.trusted_auth_headers`` is off, the role header is ignored and
the caller's role is read from their membership row instead.
"""

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.constants import TENANT_ID_HEADER, USER_ID_HEADER, USER_ROLE_HEADER
from ...core.enums import RoleName
from ...core.exceptions import UnauthorizedException, ValidationException
from ...principal import AuthContext
from ...repositories import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def _parse_role(raw: Optional[str]) -> RoleName:
    try:
        return RoleName((raw or "").strip().lower())
    except ValueError:
        raise UnauthorizedException("Unknown or missing role", code="UNAUTHORIZED")


def get_auth_context(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    x_user_role: Optional[str] = Header(None, alias=USER_ROLE_HEADER),
    x_tenant_id: Optional[str] = Header(None, alias=TENANT_ID_HEADER),
    db: Session = Depends(get_db),
) -> AuthContext:
    """
    Resolve the caller.

    Raises:
        UnauthorizedException: no identity, or an identity the tenant does not know
        ValidationException: no tenant header
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedException("Authentication required", code="UNAUTHORIZED")
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise ValidationException("X-Tenant-Id header is required", code="TENANT_REQUIRED")

    if settings.trusted_auth_headers:
        role = _parse_role(x_user_role)
    else:
        user = RepositoryFactory.create_user_repository(db).get_active_member(user_id, tenant_id)
        if user is None or user.role_name is None:
            logger.warning(
                "Rejected unknown caller",
                extra={"user_id": user_id, "tenant_id": tenant_id},
            )
            raise UnauthorizedException("Authentication required", code="UNAUTHORIZED")
        role = user.role_name

    return AuthContext(user_id=user_id, role=role, tenant_id=tenant_id)

