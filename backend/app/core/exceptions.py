# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the flight-school booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception carries a stable ``code`` (the machine-checkable key)
alongside the human readable ``message``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised for malformed or out-of-range input, before any read happens."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class ForbiddenException(DomainException):
    """Raised when the caller's role is insufficient for the requested action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFoundException(DomainException):
    """Raised when a tenant-scoped entity is missing or inactive."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class InvariantViolationException(DomainException):
    """Raised when a computed value or transition breaks a domain invariant."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVARIANT_VIOLATION"


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    default_code = "SERVICE_ERROR"

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking overlaps an existing commitment of the same resource."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time range conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class RosterWindowException(ConflictException):
    """Raised when a trial booking falls outside the instructor's roster."""

    def __init__(self, instructor_id: str, local_date: str, start_minutes: int, end_minutes: int):
        super().__init__(
            message="Booking falls outside the instructor's rostered availability.",
            code="OUTSIDE_ROSTER",
            details={
                "instructor_id": instructor_id,
                "date": local_date,
                "start_minutes": start_minutes,
                "end_minutes": end_minutes,
            },
        )


class AlreadyApprovedException(ConflictException):
    """Raised when check-in approval is attempted on an already invoiced booking."""

    def __init__(self, booking_id: str, invoice_id: Optional[str] = None):
        super().__init__(
            message="Booking check-in has already been approved",
            code="ALREADY_APPROVED",
            details={"booking_id": booking_id, "invoice_id": invoice_id},
        )


class ConcurrentUpdateException(ConflictException):
    """Raised when a row changed underneath an atomic operation."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "The record was modified concurrently; retry the operation",
            code="CONCURRENT_UPDATE",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues or query failures.
    """
