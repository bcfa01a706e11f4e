# backend/app/repositories/user_repository.py
"""User and instructor lookups used to validate booking references."""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.instructor import Instructor
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_active_member(self, user_id: str, tenant_id: str) -> Optional[User]:
        user = self.get_by_id(user_id, tenant_id=tenant_id)
        if user is None or not user.is_active:
            return None
        return user

    def find_by_email(self, tenant_id: str, email: str) -> Optional[User]:
        """Case-insensitive email lookup within a tenant."""
        try:
            return (
                self.db.query(User)
                .filter(User.tenant_id == tenant_id, func.lower(User.email) == email.lower())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding user by email: {str(e)}")
            raise RepositoryException(f"Failed to find user: {str(e)}")


class InstructorRepository(BaseRepository[Instructor]):
    def __init__(self, db: Session):
        super().__init__(db, Instructor)

    def get_active_instructor(self, instructor_id: str, tenant_id: str) -> Optional[Instructor]:
        instructor = self.get_by_id(instructor_id, tenant_id=tenant_id)
        if instructor is None or not instructor.is_actively_instructing:
            return None
        return instructor
