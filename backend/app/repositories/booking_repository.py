# backend/app/repositories/booking_repository.py
"""
Booking Repository for the booking engine.

Implements booking data access, including the row lock used by the
check-in orchestrators and the "most recent approved booking" query.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_booking_with_details(self, booking_id: str, tenant_id: str) -> Optional[Booking]:
        """Load a booking with its resources eagerly for API responses."""
        try:
            return (
                self.db.query(Booking)
                .options(
                    joinedload(Booking.aircraft),
                    joinedload(Booking.instructor),
                    joinedload(Booking.user),
                    joinedload(Booking.flight_type),
                    joinedload(Booking.lesson),
                )
                .filter(Booking.id == booking_id, Booking.tenant_id == tenant_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get booking: {str(e)}")

    def has_later_approved_booking(
        self, tenant_id: str, aircraft_id: str, start_time: datetime, exclude_booking_id: str
    ) -> bool:
        """
        True when another approved booking on the aircraft starts after
        ``start_time``; that booking then owns the aircraft's live meters.
        """
        try:
            later = (
                self.db.query(Booking.id)
                .filter(
                    Booking.tenant_id == tenant_id,
                    Booking.checked_out_aircraft_id == aircraft_id,
                    Booking.checkin_invoice_id.isnot(None),
                    Booking.start_time > start_time,
                    Booking.id != exclude_booking_id,
                )
                .first()
            )
            return later is not None
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking later bookings for aircraft {aircraft_id}: {str(e)}")
            raise RepositoryException(f"Failed to check later bookings: {str(e)}")
