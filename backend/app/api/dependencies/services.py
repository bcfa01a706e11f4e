# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.checkin_approval_service import CheckinApprovalService
from ...services.checkin_correction_service import CheckinCorrectionService
from ...services.conflict_checker import AvailabilityChecker
from .database import get_db

logger = logging.getLogger(__name__)


def get_availability_checker(db: Session = Depends(get_db)) -> AvailabilityChecker:
    """Get availability checker instance."""
    return AvailabilityChecker(db)


def get_booking_service(
    db: Session = Depends(get_db),
    availability_checker: AvailabilityChecker = Depends(get_availability_checker),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        availability_checker: Shared availability checker for the request

    Returns:
        BookingService instance
    """
    return BookingService(db, availability_checker=availability_checker)


def get_checkin_approval_service(db: Session = Depends(get_db)) -> CheckinApprovalService:
    """Get check-in approval service instance."""
    return CheckinApprovalService(db)


def get_checkin_correction_service(db: Session = Depends(get_db)) -> CheckinCorrectionService:
    """Get check-in correction service instance."""
    return CheckinCorrectionService(db)
