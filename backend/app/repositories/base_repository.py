# backend/app/repositories/base_repository.py
"""
Base Repository Pattern for the booking engine.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Tenant scoping
- Type safety with generics
- Transaction support (managed by services, repositories never commit)

The repository pattern separates data access from business logic,
making the code more testable and maintainable.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Integrity and stale-row errors are re-raised untouched so that the
    service transaction can translate them into conflicts; every other
    SQLAlchemy failure becomes a RepositoryException.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def _query(self, tenant_id: Optional[str] = None) -> Query:
        query = self.db.query(self.model)
        if tenant_id is not None:
            query = query.filter(self.model.tenant_id == tenant_id)
        return query

    def get_by_id(self, id: str, tenant_id: Optional[str] = None) -> Optional[T]:
        """
        Retrieve an entity by its primary key, optionally scoped to a tenant.
        """
        try:
            return self._query(tenant_id).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def get_for_update(self, id: str, tenant_id: Optional[str] = None) -> Optional[T]:
        """
        Retrieve an entity and lock its row (``SELECT ... FOR UPDATE``).

        The lock is held until the surrounding service transaction ends.
        Backends without row locks (SQLite) ignore the clause.
        """
        try:
            return (
                self._query(tenant_id)
                .filter(self.model.id == id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to lock {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def flush(self) -> None:
        """Flush pending ORM changes so constraint and version checks run now."""
        try:
            self.db.flush()
        except (IntegrityError, StaleDataError):
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error flushing {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to write {self.model.__name__}: {str(e)}")

    def update(self, entity: T, **kwargs: Any) -> T:
        """
        Update an already loaded entity.

        Only updates provided fields, preserves others.
        """
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        self.flush()
        return entity

    def count(self, **kwargs: Any) -> int:
        """Count entities matching given criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting records: {str(e)}")
            raise RepositoryException(f"Failed to count records: {str(e)}")
