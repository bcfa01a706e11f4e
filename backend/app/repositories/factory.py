# backend/app/repositories/factory.py
"""
Repository Factory for the booking engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .aircraft_repository import AircraftRepository
    from .booking_repository import BookingRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .invoice_repository import InvoiceRepository
    from .user_repository import InstructorRepository, UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository[Any]:
        """
        Create a generic base repository for any model.

        Args:
            db: Database session
            model: SQLAlchemy model class

        Returns:
            BaseRepository instance
        """
        return BaseRepository(db, model)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_aircraft_repository(db: Session) -> "AircraftRepository":
        """Create repository for aircraft meter state."""
        from .aircraft_repository import AircraftRepository

        return AircraftRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        """Create repository for tenant members."""
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_instructor_repository(db: Session) -> "InstructorRepository":
        """Create repository for instructors."""
        from .user_repository import InstructorRepository

        return InstructorRepository(db)

    @staticmethod
    def create_invoice_repository(db: Session) -> "InvoiceRepository":
        """Create repository for invoices and invoice items."""
        from .invoice_repository import InvoiceRepository

        return InvoiceRepository(db)
