# backend/app/services/base.py
"""
Base Service Pattern for the booking engine.

Provides common functionality for all service classes including:
- Transaction management (the unit of work: begin, commit, rollback)
- Logging
- Error translation for store-level failures
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    ConcurrentUpdateException,
    ConflictException,
    RepositoryException,
    ServiceException,
)
from ..models.booking import EXCLUSION_CONSTRAINT_NAMES
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _is_overlap_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(name in message for name in EXCLUSION_CONSTRAINT_NAMES)


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    def __init__(self, db: Session):
        """
        Initialize base service.

        Args:
            db: Database session
        """
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Everything written inside the block commits together or not at all.
        Store-level failures are translated on the way out:

        - exclusion constraint on overlapping bookings -> BookingConflictException
        - other integrity violations -> ConflictException
        - optimistic version mismatch -> ConcurrentUpdateException
        - anything else from SQLAlchemy -> ServiceException

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except IntegrityError as e:
            self.logger.error(f"Transaction rejected by constraint: {str(e.orig)}")
            self.db.rollback()
            if _is_overlap_violation(e):
                prometheus_metrics.inc_booking_conflict("store")
                raise BookingConflictException(details={"source": "store"}) from e
            raise ConflictException(
                "The change conflicts with existing data", code="INTEGRITY_CONFLICT"
            ) from e
        except StaleDataError as e:
            self.logger.error(f"Concurrent update detected: {str(e)}")
            self.db.rollback()
            raise ConcurrentUpdateException() from e
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except RepositoryException as e:
            self.logger.error(f"Repository failure in transaction: {str(e)}")
            self.db.rollback()
            raise ServiceException(str(e)) from e
        except Exception as e:
            self.logger.error(f"Unexpected error in transaction: {str(e)}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, data):
                # Method implementation

        Args:
            operation_name: Name of the operation for metrics

        Returns:
            Decorator function
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                start_time = time.perf_counter()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - start_time

                    # Only log if it's actually slow
                    if elapsed > settings.slow_operation_threshold_seconds:
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Args:
            operation: Operation name
            **context: Additional context to log
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
