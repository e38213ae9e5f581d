"""
Keyed mutual exclusion for booking and ledger writes.

Two scopes are used:

- ``slot``: one (location, day, slot) at a time, held only for the reservation
  commit. The database unique index on active sessions remains the final guard.
- ``member``: one member's ledger at a time, held only for a balance
  check-and-debit or a refund. The credit account row lock is the final guard
  across processes.

Locks are always taken in-process. When ``settings.redis_url`` is set, a Redis
``SET NX EX`` key is also taken so that several workers serialize; if Redis is
unreachable the lock degrades to in-process only and a warning is logged.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Dict, Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()
_REDIS_POLL_SECONDS = 0.02


def slot_lock_key(location_id: str, day: date, slot_code: str) -> str:
    return f"slot:{location_id}:{day.isoformat()}:{slot_code}"


def member_lock_key(member_id: str) -> str:
    return f"member:{member_id}:ledger"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


class _KeyedLockRegistry:
    """Process-local locks created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._refcounts: Dict[str, int] = {}

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
                self._refcounts[key] = 0
            self._refcounts[key] += 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            self._refcounts[key] -= 1
            if self._refcounts[key] == 0:
                del self._refcounts[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float) -> Iterator[bool]:
        lock = self._checkout(key)
        acquired = False
        try:
            acquired = lock.acquire(timeout=timeout)
            yield acquired
        finally:
            if acquired:
                lock.release()
            self._checkin(key)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


_LOCAL_LOCKS = _KeyedLockRegistry()


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
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
            logger.warning("booking_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _acquire_redis(client: Redis, key: str, deadline: float, ttl_s: int) -> Optional[bool]:
    """Return True/False for acquired/timed out, None when Redis errored."""
    namespaced = _namespaced_key(key)
    try:
        while True:
            if client.set(namespaced, str(time.time()), nx=True, ex=ttl_s):
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(_REDIS_POLL_SECONDS)
    except Exception as exc:
        logger.warning(
            "booking_lock_redis_acquire_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )
        return None


def _release_redis(client: Redis, key: str) -> None:
    try:
        client.delete(_namespaced_key(key))
    except Exception as exc:
        logger.warning(
            "booking_lock_redis_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def keyed_lock(key: str, *, scope: str, timeout: float, ttl_s: Optional[int] = None) -> Iterator[bool]:
    """
    Hold ``key`` for the duration of the block.

    Yields whether the lock was acquired within ``timeout`` seconds; callers
    must not perform the guarded write when it yields False.
    """
    deadline = time.monotonic() + timeout
    with _LOCAL_LOCKS.hold(key, timeout) as local_acquired:
        if not local_acquired:
            prometheus_metrics.record_lock(scope, "timeout")
            logger.warning("booking_lock_timeout", extra={"lock_key": key, "scope": scope})
            yield False
            return

        client = _get_sync_redis()
        redis_held = False
        if client is not None:
            remote = _acquire_redis(client, key, deadline, ttl_s or settings.lock_ttl_seconds)
            if remote is False:
                prometheus_metrics.record_lock(scope, "timeout")
                logger.warning("booking_lock_timeout", extra={"lock_key": key, "scope": scope})
                yield False
                return
            redis_held = remote is True
            if remote is None:
                prometheus_metrics.record_lock(scope, "redis_unavailable")

        prometheus_metrics.record_lock(scope, "acquired")
        try:
            yield True
        finally:
            if redis_held and client is not None:
                _release_redis(client, key)


@contextmanager
def slot_lock(location_id: str, day: date, slot_code: str, timeout: float) -> Iterator[bool]:
    with keyed_lock(slot_lock_key(location_id, day, slot_code), scope="slot", timeout=timeout) as acquired:
        yield acquired


@contextmanager
def member_lock(member_id: str, timeout: float) -> Iterator[bool]:
    with keyed_lock(member_lock_key(member_id), scope="member", timeout=timeout) as acquired:
        yield acquired
