# studiobook/repositories/user_repository.py
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive email lookup."""
        try:
            normalized = email.strip().lower()
            return cast(
                Optional[User],
                self.db.query(User).filter(func.lower(User.email) == normalized).first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting user by email: {str(e)}")
            raise RepositoryException(f"Failed to get user: {str(e)}") from e

    def get_users_with_roles(self, user_ids: Sequence[str], roles: Sequence[str]) -> List[User]:
        if not user_ids:
            return []
        try:
            return cast(
                List[User],
                self.db.query(User)
                .filter(User.id.in_(list(user_ids)), User.role.in_(list(roles)))
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading users by role: {str(e)}")
            raise RepositoryException(f"Failed to load users: {str(e)}") from e
