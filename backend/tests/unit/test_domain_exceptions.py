import pytest

from app.core.exceptions import (
    AlreadyApprovedException,
    BookingConflictException,
    ConcurrentUpdateException,
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    RosterWindowException,
    ServiceException,
    UnauthorizedException,
    ValidationException,
)


@pytest.mark.parametrize(
    "exc,status_code,code",
    [
        (ValidationException("bad"), 400, "VALIDATION_ERROR"),
        (UnauthorizedException("who"), 401, "UNAUTHORIZED"),
        (ForbiddenException("no"), 403, "FORBIDDEN"),
        (NotFoundException("gone"), 404, "NOT_FOUND"),
        (InvariantViolationException("broken"), 400, "INVARIANT_VIOLATION"),
        (BookingConflictException(), 409, "BOOKING_CONFLICT"),
        (AlreadyApprovedException("b1", "i1"), 409, "ALREADY_APPROVED"),
        (ConcurrentUpdateException(), 409, "CONCURRENT_UPDATE"),
        (ServiceException("db down"), 500, "SERVICE_ERROR"),
    ],
)
def test_http_mapping(exc, status_code, code):
    http_exc = exc.to_http_exception()

    assert http_exc.status_code == status_code
    assert http_exc.detail["code"] == code
    assert http_exc.detail["message"]


def test_explicit_code_overrides_default():
    exc = ValidationException("End time must be after start time", code="INVALID_RANGE")

    assert exc.code == "INVALID_RANGE"
    assert str(exc) == "End time must be after start time"


def test_roster_window_details():
    exc = RosterWindowException("ins1", "2030-01-16", 420, 480)

    assert exc.code == "OUTSIDE_ROSTER"
    assert exc.details == {
        "instructor_id": "ins1",
        "date": "2030-01-16",
        "start_minutes": 420,
        "end_minutes": 480,
    }


def test_already_approved_carries_invoice():
    exc = AlreadyApprovedException("b1", "i1")

    assert exc.details == {"booking_id": "b1", "invoice_id": "i1"}
