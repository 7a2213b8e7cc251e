"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from studiobook.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
    "future": True,
}


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options for the configured dialect."""
    if db_url.startswith("sqlite"):
        # SQLite sessions are shared across request threads; the resource locks serialize writers.
        return {
            "connect_args": {"check_same_thread": False, "timeout": 15},
            "future": True,
            "echo": settings.database_echo,
        }
    kwargs = dict(_DEFAULT_POOL_KWARGS)
    kwargs["echo"] = settings.database_echo
    return kwargs


def create_db_engine(db_url: str | None = None) -> Engine:
    url = db_url or settings.database_url
    return create_engine(url, **_build_engine_kwargs(url))


engine: Engine = create_db_engine()


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


T = TypeVar("T")
# Transient failures worth another attempt: dropped connections and lock contention.
_RETRYABLE_ERROR_SNIPPETS = (
    "server closed the connection",
    "ssl connection has been closed unexpectedly",
    "database is locked",
    "deadlock detected",
    "could not serialize access",
)


def _is_retryable_db_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def _retry_delay(attempt: int) -> float:
    base = 0.1 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = 3) -> T:
    """
    Execute a DB operation with retries for transient store failures.

    Also retries ``StoreTransactionAbortedException`` raised by the services,
    so callers can wrap a whole booking write in it.
    """
    from studiobook.core.exceptions import StoreTransactionAbortedException

    attempt = 1
    while True:
        try:
            return func()
        except (OperationalError, StoreTransactionAbortedException) as exc:
            retryable = isinstance(exc, StoreTransactionAbortedException) or _is_retryable_db_error(
                exc
            )
            if attempt >= max_attempts or not retryable:
                raise

            delay = _retry_delay(attempt)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db",
    "with_db_retry",
]
