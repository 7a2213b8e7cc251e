import functools
import logging

from passlib.context import CryptContext

from .core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """
    Hash used when the user does not exist.

    Verifying against it keeps login timing the same for known and unknown emails.
    """
    return str(pwd_context.hash("timing_attack_prevention_dummy_password"))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password
        hashed_password: The hashed password to compare against

    Returns:
        bool: True if password matches, False otherwise
    """
    try:
        return bool(pwd_context.verify(plain_password, hashed_password))
    except (ValueError, TypeError) as e:
        logger.error(f"Error verifying password: {type(e).__name__}")
        return False


def burn_verification_time(plain_password: str) -> None:
    """Spend the same bcrypt work as a real verification and discard the result."""
    verify_password(plain_password, _dummy_hash())


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: The plain text password to hash

    Returns:
        str: The hashed password
    """
    hashed = pwd_context.hash(password)
    return str(hashed)
