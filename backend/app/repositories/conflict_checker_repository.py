# backend/app/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the booking engine.

Data access for availability checks: overlapping bookings in a UTC range
and the roster rules that apply to an instructor on a local date.
"""

from datetime import date, datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import NON_BLOCKING_STATUSES, Booking
from ..models.roster import RosterRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """
    Repository for conflict checking data access.

    Overlap is the half-open interval test
    ``existing.start < end AND existing.end > start``; bookings that merely
    touch a boundary are not returned.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Booking Conflict Queries

    def get_overlapping_bookings(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get blocking bookings whose range overlaps ``[start, end)``.

        Args:
            tenant_id: Tenant scope
            start: Range start (UTC)
            end: Range end (UTC)
            exclude_booking_id: Optional booking ID to exclude from results

        Returns:
            List of overlapping bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.tenant_id == tenant_id,
                Booking.start_time < end,
                Booking.end_time > start,
                Booking.status.notin_(list(NON_BLOCKING_STATUSES)),
            )

            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)

            return cast(List[Booking], query.order_by(Booking.start_time).all())

        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}")

    # Roster Queries

    def get_roster_rules(
        self, tenant_id: str, instructor_id: str, weekday: int, local_date: date
    ) -> List[RosterRule]:
        """
        Active, non-voided rules for an instructor on a weekday that are in
        effect on ``local_date`` (both bounds inclusive, open end allowed).
        """
        try:
            return cast(
                List[RosterRule],
                self.db.query(RosterRule)
                .filter(
                    RosterRule.tenant_id == tenant_id,
                    RosterRule.instructor_id == instructor_id,
                    RosterRule.day_of_week == weekday,
                    RosterRule.is_active.is_(True),
                    RosterRule.voided_at.is_(None),
                    RosterRule.effective_from <= local_date,
                    or_(
                        RosterRule.effective_until.is_(None),
                        RosterRule.effective_until >= local_date,
                    ),
                )
                .order_by(RosterRule.start_time)
                .all(),
            )

        except SQLAlchemyError as e:
            self.logger.error(f"Error getting roster rules: {str(e)}")
            raise RepositoryException(f"Failed to get roster rules: {str(e)}")
