# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_auth_context
from .database import get_db
from .services import (
    get_availability_checker,
    get_booking_service,
    get_checkin_approval_service,
    get_checkin_correction_service,
)

__all__ = [
    # Auth
    "get_auth_context",
    # Database
    "get_db",
    # Services
    "get_availability_checker",
    "get_booking_service",
    "get_checkin_approval_service",
    "get_checkin_correction_service",
]
