# studiobook/schemas/user.py
"""User registration and profile schemas."""

from datetime import datetime
import re
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from ..core.enums import RoleName
from ..core.time_utils import is_valid_timezone
from ._strict_base import StrictRequestModel
from .base import StandardizedModel

HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class AvailabilityWindow(StrictRequestModel):
    """Weekly staff availability. ``day`` is 0 (Sunday) through 6 (Saturday)."""

    day: int = Field(..., ge=0, le=6)
    start_time: str = Field(..., pattern=HHMM_REGEX.pattern)
    end_time: str = Field(..., pattern=HHMM_REGEX.pattern)

    @model_validator(mode="after")
    def _start_before_end(self) -> "AvailabilityWindow":
        # Zero-padded HH:MM strings compare in clock order.
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class StaffDetails(StrictRequestModel):
    position: Optional[str] = Field(None, max_length=100)
    specialties: List[str] = Field(default_factory=list)
    availability: List[AvailabilityWindow] = Field(default_factory=list)


class ClientDetails(StrictRequestModel):
    company: Optional[str] = Field(None, max_length=200)
    payment_methods: List[str] = Field(
        default_factory=list, description="Opaque payment method references"
    )


class NotificationPreferences(StrictRequestModel):
    email: bool = True
    sms: bool = False


class Preferences(StrictRequestModel):
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        if not is_valid_timezone(v):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class UserCreate(StrictRequestModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=32)
    role: RoleName = RoleName.CLIENT
    profile_image: Optional[str] = None
    preferences: Preferences = Field(default_factory=Preferences)
    staff_details: Optional[StaffDetails] = None
    client_details: Optional[ClientDetails] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @model_validator(mode="after")
    def _details_match_role(self) -> "UserCreate":
        if self.staff_details is not None and self.role == RoleName.CLIENT:
            raise ValueError("staff_details are only valid for staff or admin users")
        if self.client_details is not None and self.role != RoleName.CLIENT:
            raise ValueError("client_details are only valid for client users")
        return self


class UserResponse(StandardizedModel):
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    role: RoleName
    profile_image: Optional[str] = None
    preferences: dict
    staff_details: Optional[dict] = None
    client_details: Optional[dict] = None
    created_at: datetime
