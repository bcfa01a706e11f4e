# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService and the check-in services.

Endpoints:
    GET /availability - Aircraft and instructors committed in a time range
    POST / - Create a booking
    POST /trial - Create a trial flight for a guest (staff only)
    GET /{booking_id} - Booking details
    PATCH /{booking_id} - Reschedule or swap resources (staff only)
    POST /{booking_id}/confirm - unconfirmed|briefing -> confirmed
    POST /{booking_id}/briefing - confirmed -> briefing
    POST /{booking_id}/checkout - confirmed -> flying
    POST /{booking_id}/cancel - Cancel a booking
    POST /{booking_id}/checkin/approve - flying -> complete, issues the invoice
    POST /{booking_id}/checkin/correct - Correct end readings of an approved check-in

Every response carries ``Cache-Control: no-store``.
"""

import asyncio
from datetime import datetime
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from ...api.dependencies import (
    get_auth_context,
    get_availability_checker,
    get_booking_service,
    get_checkin_approval_service,
    get_checkin_correction_service,
)
from ...core.exceptions import DomainException
from ...core.timezone_utils import ensure_utc
from ...errors import NO_STORE_HEADERS
from ...models.booking import Booking
from ...principal import AuthContext
from ...schemas.booking import (
    AvailabilityResponse,
    BookingCreate,
    BookingReschedule,
    BookingResponse,
    BriefingRequest,
    CancelRequest,
    CheckoutRequest,
    TrialBookingCreate,
)
from ...schemas.checkin import (
    CheckinApprovalRequest,
    CheckinApprovalResponse,
    CheckinCorrectionRequest,
    CheckinCorrectionResponse,
    InvoiceSummary,
)
from ...services.booking_service import BookingService
from ...services.checkin_approval_service import CheckinApprovalService
from ...services.checkin_correction_service import CheckinCorrectionService
from ...services.conflict_checker import AvailabilityChecker

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _no_store(response: Response) -> None:
    response.headers.update(NO_STORE_HEADERS)


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse.model_validate(booking)


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    response: Response,
    start: datetime = Query(..., description="Range start, ISO-8601"),
    end: datetime = Query(..., description="Range end, ISO-8601"),
    exclude_booking_id: Optional[str] = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
    checker: AvailabilityChecker = Depends(get_availability_checker),
) -> AvailabilityResponse:
    """Aircraft and instructors already committed in ``[start, end)``."""
    _no_store(response)
    start_utc, end_utc = ensure_utc(start), ensure_utc(end)
    try:
        unavailable = await asyncio.to_thread(
            checker.find_unavailable,
            ctx.tenant_id,
            start_utc,
            end_utc,
            exclude_booking_id=exclude_booking_id,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AvailabilityResponse(
        start_time=start_utc,
        end_time=end_utc,
        unavailable_aircraft_ids=sorted(unavailable.aircraft_ids),
        unavailable_instructor_ids=sorted(unavailable.instructor_ids),
    )


@router.post(
    "/trial",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Staff only"},
        409: {"description": "Resource booked or outside the instructor's roster"},
    },
)
async def create_trial_booking(
    response: Response,
    booking_data: TrialBookingCreate = Body(...),
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Book a trial flight for a guest, creating the guest as a student if needed."""
    _no_store(response)
    try:
        booking = await asyncio.to_thread(booking_service.create_trial_booking, ctx, booking_data)
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Root routes
# ============================================================================


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Aircraft, instructor, member or flight type not found"},
        409: {"description": "Time range not available"},
    },
)
async def create_booking(
    response: Response,
    booking_data: BookingCreate = Body(...),
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Create a booking.

    Members book themselves and always start unconfirmed; staff may book
    anyone and create the booking confirmed.
    """
    _no_store(response)
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, ctx, booking_data)
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 3: Dynamic routes (with path parameters - placed last)
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    response: Response,
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Booking details; members only see their own bookings."""
    _no_store(response)
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, ctx, booking_id)
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: str,
    response: Response,
    update_data: BookingReschedule = Body(...),
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a booking or change its resources. Only supplied fields change."""
    _no_store(response)
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking, ctx, booking_id, update_data
        )
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str,
    response: Response,
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    _no_store(response)
    try:
        booking = await asyncio.to_thread(booking_service.confirm_booking, ctx, booking_id)
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/briefing", response_model=BookingResponse)
async def start_briefing(
    booking_id: str,
    response: Response,
    briefing_data: Optional[BriefingRequest] = Body(None),
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    _no_store(response)
    try:
        booking = await asyncio.to_thread(
            booking_service.start_briefing, ctx, booking_id, briefing_data
        )
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/checkout", response_model=BookingResponse)
async def checkout_booking(
    booking_id: str,
    response: Response,
    checkout_data: CheckoutRequest = Body(...),
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Authorize departure and freeze the checkout snapshot."""
    _no_store(response)
    try:
        booking = await asyncio.to_thread(
            booking_service.checkout_booking, ctx, booking_id, checkout_data
        )
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    response: Response,
    cancel_data: Optional[CancelRequest] = Body(None),
    ctx: AuthContext = Depends(get_auth_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    _no_store(response)
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, ctx, booking_id, cancel_data
        )
        return _booking_response(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/checkin/approve",
    response_model=CheckinApprovalResponse,
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Not found"},
        409: {"description": "Already approved"},
    },
)
async def approve_checkin(
    booking_id: str,
    response: Response,
    approval_data: CheckinApprovalRequest = Body(...),
    ctx: AuthContext = Depends(get_auth_context),
    approval_service: CheckinApprovalService = Depends(get_checkin_approval_service),
) -> CheckinApprovalResponse:
    """
    Approve a flying booking's check-in.

    Creates the invoice, completes the booking and moves the aircraft's
    total time in service, all or nothing.
    """
    _no_store(response)
    try:
        result = await asyncio.to_thread(
            approval_service.approve_checkin, ctx, booking_id, approval_data
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CheckinApprovalResponse(
        booking_id=result.booking_id,
        invoice=InvoiceSummary.model_validate(result.invoice),
        applied_aircraft_delta=result.applied_aircraft_delta,
        total_hours_start=result.total_hours_start,
        total_hours_end=result.total_hours_end,
    )


@router.post("/{booking_id}/checkin/correct", response_model=CheckinCorrectionResponse)
async def correct_checkin(
    booking_id: str,
    response: Response,
    correction_data: CheckinCorrectionRequest = Body(...),
    ctx: AuthContext = Depends(get_auth_context),
    correction_service: CheckinCorrectionService = Depends(get_checkin_correction_service),
) -> CheckinCorrectionResponse:
    """Correct the end readings of an approved check-in."""
    _no_store(response)
    try:
        result = await asyncio.to_thread(
            correction_service.correct_checkin, ctx, booking_id, correction_data
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CheckinCorrectionResponse(
        booking_id=result.booking_id,
        correction_delta=result.correction_delta,
        new_applied_delta=result.new_applied_delta,
        aircraft_total_time_in_service=result.aircraft_total_time_in_service,
        updated_current_meters=result.updated_current_meters,
    )
