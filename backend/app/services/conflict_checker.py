# backend/app/services/conflict_checker.py
"""
Availability Checker Service for the booking engine.

Handles booking conflict detection and validation including:
- Finding aircraft and instructors already committed in a time range
- Rejecting a requested aircraft/instructor that is already committed
- Validating trial bookings against instructor roster windows

Availability is advisory: it is checked when a booking is written, and on
PostgreSQL the exclusion constraint on bookings backs it up at commit.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
import logging
from typing import Iterable, Optional, Set

from sqlalchemy.orm import Session

from ..core.exceptions import BookingConflictException, RosterWindowException, ValidationException
from ..core.timezone_utils import (
    MINUTES_PER_DAY,
    day_of_week,
    get_zoned_date_and_time,
    parse_time_to_minutes,
)
from ..models.roster import RosterRule
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class UnavailableResources:
    aircraft_ids: Set[str] = field(default_factory=set)
    instructor_ids: Set[str] = field(default_factory=set)


def _rule_bounds(rule: RosterRule) -> Optional[tuple[int, int]]:
    start = parse_time_to_minutes(rule.start_time)
    end = MINUTES_PER_DAY if rule.end_time in ("24:00", "24:00:00") else parse_time_to_minutes(
        rule.end_time
    )
    if start is None or end is None or end <= start:
        return None
    return start, end


def window_contains(rules: Iterable[RosterRule], start_minutes: int, end_minutes: int) -> bool:
    """
    True when one single rule window covers ``[start_minutes, end_minutes)``.

    Two adjacent windows that together cover the range do not count.
    """
    for rule in rules:
        bounds = _rule_bounds(rule)
        if bounds is None:
            continue
        rule_start, rule_end = bounds
        if rule_start <= start_minutes and end_minutes <= rule_end:
            return True
    return False


def local_minute_span(start: datetime, end: datetime, tz_name: str) -> tuple[date, int, int]:
    """
    Local date of ``start`` plus start/end minutes after that date's midnight.

    An end on a later local day is pushed past 1440 so it can never fit a
    single-day roster window.
    """
    start_date, start_hhmm = get_zoned_date_and_time(start, tz_name)
    end_date, end_hhmm = get_zoned_date_and_time(end, tz_name)
    start_minutes = parse_time_to_minutes(start_hhmm) or 0
    end_minutes = (parse_time_to_minutes(end_hhmm) or 0) + MINUTES_PER_DAY * (
        end_date - start_date
    ).days
    return start_date, start_minutes, end_minutes


class AvailabilityChecker(BaseService):
    """
    Service for checking resource availability and roster windows.

    This service centralizes all conflict detection logic to ensure
    consistent validation across booking creation, reschedule and
    trial bookings.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize availability checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("find_unavailable")
    def find_unavailable(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> UnavailableResources:
        """
        Aircraft and instructors committed to any blocking booking that
        overlaps ``[start, end)``.

        Args:
            tenant_id: Tenant scope
            start: Range start (UTC)
            end: Range end (UTC)
            exclude_booking_id: Booking to ignore (the one being rescheduled)

        Returns:
            Distinct aircraft and instructor ids
        """
        if end <= start:
            raise ValidationException("End time must be after start time", code="INVALID_RANGE")

        bookings = self.repository.get_overlapping_bookings(
            tenant_id, start, end, exclude_booking_id=exclude_booking_id
        )

        unavailable = UnavailableResources()
        for booking in bookings:
            if booking.aircraft_id:
                unavailable.aircraft_ids.add(booking.aircraft_id)
            if booking.instructor_id:
                unavailable.instructor_ids.add(booking.instructor_id)
        return unavailable

    def ensure_available(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        aircraft_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """Raise BookingConflictException if a requested resource is already committed."""
        unavailable = self.find_unavailable(
            tenant_id, start, end, exclude_booking_id=exclude_booking_id
        )

        conflicts = {}
        if aircraft_id and aircraft_id in unavailable.aircraft_ids:
            conflicts["aircraft_id"] = aircraft_id
        if instructor_id and instructor_id in unavailable.instructor_ids:
            conflicts["instructor_id"] = instructor_id

        if conflicts:
            self.logger.warning(
                f"Booking conflict for {conflicts} between {start.isoformat()} and {end.isoformat()}"
            )
            prometheus_metrics.inc_booking_conflict("availability")
            raise BookingConflictException(
                "Requested resources are already booked for this time",
                details={"conflicts": conflicts},
            )

    @BaseService.measure_operation("fits_roster_window")
    def fits_roster_window(
        self,
        tenant_id: str,
        instructor_id: str,
        local_date: date,
        start_minutes: int,
        end_minutes: int,
    ) -> bool:
        """
        Whether the instructor is rostered for the whole local range.

        An instructor with no rule in effect on that day is not rostered.
        """
        rules = self.repository.get_roster_rules(
            tenant_id, instructor_id, day_of_week(local_date), local_date
        )
        return window_contains(rules, start_minutes, end_minutes)

    def ensure_within_roster(
        self, tenant_id: str, instructor_id: str, start: datetime, end: datetime, tz_name: str
    ) -> None:
        local_date, start_minutes, end_minutes = local_minute_span(start, end, tz_name)
        if not self.fits_roster_window(
            tenant_id, instructor_id, local_date, start_minutes, end_minutes
        ):
            prometheus_metrics.inc_booking_conflict("roster")
            raise RosterWindowException(
                instructor_id, local_date.isoformat(), start_minutes, end_minutes
            )
