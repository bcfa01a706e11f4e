# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the booking engine.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- ConflictCheckerRepository: Overlapping bookings and roster rules
- BookingRepository: Booking loads, row locks and the most-recent guard query
- AircraftRepository: Fleet meter state
- UserRepository / InstructorRepository: Reference validation
- InvoiceRepository: Invoice numbering and loads

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    booking = repository.get_for_update(booking_id, tenant_id=ctx.tenant_id)

Repositories never commit; the service that owns the transaction does.
"""

from .aircraft_repository import AircraftRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .invoice_repository import InvoiceRepository
from .user_repository import InstructorRepository, UserRepository

__all__ = [
    "AircraftRepository",
    "BaseRepository",
    "BookingRepository",
    "ConflictCheckerRepository",
    "InstructorRepository",
    "InvoiceRepository",
    "RepositoryFactory",
    "UserRepository",
]
