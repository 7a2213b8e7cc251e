# studiobook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_PROJECT_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _PROJECT_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path} (exists={env_path.exists()})")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking core."""

    environment: str = Field(default="development", description="deployment environment name")

    # Store
    database_url: str = Field(
        default="sqlite:///./studiobook.db",
        description="SQLAlchemy URL for the booking store",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    # Single-flight resource locks
    booking_lock_backend: Literal["local", "redis"] = Field(
        default="local",
        description="local = in-process locks only, redis = in-process + distributed lease",
    )
    redis_url: str = Field(default="redis://localhost:6379/0")
    lock_namespace: str = Field(default="studiobook")
    booking_lock_ttl_seconds: int = Field(default=30, ge=1)
    booking_lock_wait_seconds: float = Field(default=5.0, ge=0)

    # Booking rules
    min_booking_minutes: int = Field(default=15, ge=1)
    max_booking_minutes: int = Field(default=1440, ge=1)
    default_currency: str = Field(default="USD", min_length=3, max_length=3)

    # Credentials
    password_hash_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor; tests lower this to keep hashing fast",
    )
    min_password_length: int = Field(default=6, ge=1)

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


settings = Settings()
