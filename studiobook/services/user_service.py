# studiobook/services/user_service.py
"""
User registration and credential checks.

Passwords are hashed with bcrypt through passlib and never logged. Emails
are unique case-insensitively: the service checks first and the unique
index on ``users.email`` backs it up under concurrency.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import burn_verification_time, get_password_hash, verify_password
from ..core.config import settings
from ..core.exceptions import (
    EmailAlreadyRegisteredException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ..models.user import User
from ..principal import ActorContext
from ..repositories import RepositoryFactory
from ..schemas.user import UserCreate, UserResponse
from .base import BaseService

logger = logging.getLogger(__name__)


class UserService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_user_repository(db)

    @BaseService.measure_operation("register_user")
    def register_user(self, data: UserCreate) -> UserResponse:
        """
        Create a user account.

        Raises:
            ValidationException: password shorter than the configured minimum
            EmailAlreadyRegisteredException: email already in use (any casing)
        """
        email = data.email.strip().lower()
        if len(data.password) < settings.min_password_length:
            raise ValidationException(
                f"Password must be at least {settings.min_password_length} characters",
                code="PASSWORD_TOO_SHORT",
                details={"min_length": settings.min_password_length},
            )

        with self.transaction(on_integrity_error=lambda _exc: EmailAlreadyRegisteredException(email)):
            if self.repository.get_by_email(email) is not None:
                raise EmailAlreadyRegisteredException(email)
            user = User(
                email=email,
                hashed_password=get_password_hash(data.password),
                name=data.name,
                phone=data.phone,
                role=data.role.value,
                profile_image=data.profile_image,
                preferences=data.preferences.model_dump(),
                staff_details=data.staff_details.model_dump() if data.staff_details else None,
                client_details=data.client_details.model_dump() if data.client_details else None,
                created_at=self.now(),
            )
            self.db.add(user)
            self.db.flush()

        self.log_operation("register_user", user_id=user.id, role=user.role)
        return UserResponse.model_validate(user)

    @BaseService.measure_operation("authenticate")
    def authenticate(self, email: str, password: str) -> ActorContext:
        """
        Verify credentials and return the actor context for the user.

        Unknown emails still pay for one bcrypt verification.
        """
        user = self.repository.get_by_email(email)
        if user is None:
            burn_verification_time(password)
            raise UnauthorizedException("Invalid email or password", code="INVALID_CREDENTIALS")
        if not verify_password(password, user.hashed_password):
            self.logger.info("Failed login", extra={"user_id": user.id})
            raise UnauthorizedException("Invalid email or password", code="INVALID_CREDENTIALS")
        return ActorContext(user_id=user.id, role=user.role)

    def get_user(self, user_id: str) -> UserResponse:
        user: Optional[User] = self.repository.get_by_id(user_id, load_relationships=False)
        if user is None:
            raise NotFoundException(f"User {user_id} not found", code="USER_NOT_FOUND")
        return UserResponse.model_validate(user)
