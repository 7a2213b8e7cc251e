"""
Single-flight locks for booking resources.

Every write that checks and then reserves a room or equipment runs inside
``resource_locks(...)``. Keys are acquired in sorted order so two writers
touching overlapping resource sets cannot deadlock each other.

The in-process lock always applies. With ``booking_lock_backend="redis"`` a
``SET NX EX`` lease is taken as well so multiple processes serialize on the
same keys.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
import logging
import threading
import time
from typing import Any, Dict, Iterable, Iterator, List, Optional
import uuid

from redis import Redis

from studiobook.core.config import settings
from studiobook.core.exceptions import ResourceBusyException
from studiobook.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

# key -> [lock, holders and waiters]; entries are dropped when the count hits zero.
_LOCAL_LOCKS: Dict[str, List[Any]] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_REDIS_POLL_SECONDS = 0.05

# Delete the lease only if we still own it.
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def room_key(room_id: str) -> str:
    return f"room:{room_id}"


def equipment_key(equipment_id: str) -> str:
    return f"equipment:{equipment_id}"


def booking_key(booking_id: str) -> str:
    return f"booking:{booking_id}"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _checkout_local(key: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(key)
        if entry is None:
            entry = [threading.Lock(), 0]
            _LOCAL_LOCKS[key] = entry
        entry[1] += 1
        return entry[0]


def _checkin_local(key: str) -> None:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS[key]
        entry[1] -= 1
        if entry[1] == 0:
            del _LOCAL_LOCKS[key]


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


@contextmanager
def _hold_local(key: str, wait_s: float) -> Iterator[None]:
    lock = _checkout_local(key)
    try:
        if not lock.acquire(timeout=wait_s):
            prometheus_metrics.record_booking_lock("acquire", "timeout")
            logger.warning("booking_lock_local_timeout", extra={"resource": key, "waited": wait_s})
            raise ResourceBusyException(key, wait_s)
        try:
            yield
        finally:
            lock.release()
    finally:
        _checkin_local(key)


@contextmanager
def _hold_redis(client: Redis, key: str, wait_s: float, ttl_s: int) -> Iterator[None]:
    name = _namespaced_key(key)
    token = uuid.uuid4().hex
    deadline = time.monotonic() + wait_s
    while True:
        if client.set(name, token, nx=True, ex=ttl_s):
            break
        if time.monotonic() >= deadline:
            prometheus_metrics.record_booking_lock("acquire", "timeout")
            logger.warning("booking_lock_redis_timeout", extra={"resource": key, "waited": wait_s})
            raise ResourceBusyException(key, wait_s)
        prometheus_metrics.record_booking_lock("acquire", "blocked")
        time.sleep(_REDIS_POLL_SECONDS)
    try:
        yield
    finally:
        try:
            released = client.eval(_RELEASE_SCRIPT, 1, name, token)
            prometheus_metrics.record_booking_lock("release", "success" if released else "expired")
        except Exception as exc:
            prometheus_metrics.record_booking_lock("release", "error")
            logger.warning(
                "booking_lock_sync_release_failed",
                extra={
                    "resource": key,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )


def _normalize_keys(keys: Iterable[str]) -> List[str]:
    return sorted({k for k in keys if k})


@contextmanager
def resource_locks(
    keys: Iterable[str],
    *,
    wait_s: Optional[float] = None,
    ttl_s: Optional[int] = None,
    backend: Optional[str] = None,
) -> Iterator[List[str]]:
    """
    Hold every lock in ``keys`` for the duration of the block.

    Raises:
        ResourceBusyException: if any key cannot be acquired within ``wait_s``
    """
    ordered = _normalize_keys(keys)
    wait = settings.booking_lock_wait_seconds if wait_s is None else wait_s
    ttl = settings.booking_lock_ttl_seconds if ttl_s is None else ttl_s
    mode = backend or settings.booking_lock_backend

    client: Optional[Redis] = None
    if mode == "redis":
        client = _get_sync_redis()
        if client is None:
            prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
            logger.warning(
                "booking_lock_sync_redis_unavailable",
                extra={"resources": ordered},
            )

    with ExitStack() as stack:
        for key in ordered:
            stack.enter_context(_hold_local(key, wait))
            if client is not None:
                try:
                    stack.enter_context(_hold_redis(client, key, wait, ttl))
                except ResourceBusyException:
                    raise
                except Exception as exc:
                    # Redis outage after connect: the in-process lock still holds.
                    prometheus_metrics.record_booking_lock("acquire", "error")
                    logger.warning(
                        "booking_lock_sync_failed",
                        extra={
                            "resource": key,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                    )
        prometheus_metrics.record_booking_lock("acquire", "success")
        yield ordered
