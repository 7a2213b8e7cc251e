# studiobook/models/user.py
"""
User model.

Role-specific details (staff schedule, client company and payment method
references) are kept as JSON blocks; they are validated by the user schemas
before they reach the row.
"""

from typing import Any, Dict

from sqlalchemy import JSON, CheckConstraint, Column, String, Text
from sqlalchemy.orm import validates
import ulid

from ..core.enums import RoleName
from ..core.time_utils import utc_now
from ..database import Base
from .types import UTCDateTime


def default_preferences() -> Dict[str, Any]:
    return {
        "notification_preferences": {"email": True, "sms": False},
        "timezone": "UTC",
    }


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(String(20), nullable=False, default=RoleName.CLIENT.value)
    profile_image = Column(Text, nullable=True)

    preferences = Column(JSON, nullable=False, default=default_preferences)
    staff_details = Column(JSON, nullable=True)
    client_details = Column(JSON, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'staff', 'client')", name="ck_users_role"),
    )

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower() if value else value

    @property
    def role_name(self) -> RoleName:
        return RoleName(self.role)

    @property
    def is_staff(self) -> bool:
        return self.role in (RoleName.STAFF.value, RoleName.ADMIN.value)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} role={self.role}>"
