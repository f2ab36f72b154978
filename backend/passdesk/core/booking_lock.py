from __future__ import annotations

from contextlib import ExitStack, contextmanager
import logging
import threading
from time import monotonic
from typing import Dict, Iterable, Iterator, List, Optional

from redis import Redis
from redis.exceptions import LockError, RedisError
from redis.lock import Lock as RedisLock

from passdesk.core.config import settings
from passdesk.core.exceptions import LockUnavailableException
from passdesk.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def offering_key(batch_id: str) -> str:
    return f"offering:{batch_id}:mutex"


def pass_key(business_id: str) -> str:
    return f"passes:{business_id}:mutex"


def teacher_key(business_id: str, teacher_name: str) -> str:
    normalized = " ".join((teacher_name or "").lower().split())
    return f"teacher:{business_id}:{normalized}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    if not settings.redis_url:
        return None
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
            client.ping()
        except (RedisError, ValueError) as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


class KeyedLockRegistry:
    """
    Mutexes addressed by string key, shared by every worker process.

    Each key is taken in two tiers: a per-process ``threading.Lock`` so
    threads queue locally, then a Redis lock (``SET NX PX`` with a TTL and
    token-checked release) so other processes are excluded too. When Redis
    cannot be reached the local tier still applies and the outcome is
    recorded as ``redis_unavailable``.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._shared: Dict[str, RedisLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _blocked(self, key: str, wait: float) -> LockUnavailableException:
        prometheus_metrics.record_booking_lock("acquire", "blocked")
        logger.warning("booking_lock_timeout", extra={"key": key, "timeout": wait})
        return LockUnavailableException(key, wait)

    def _acquire_shared(self, key: str, wait: float, remaining: float) -> None:
        client = _get_sync_redis()
        if client is None:
            prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
            logger.warning("booking_lock_sync_redis_unavailable", extra={"key": key})
            return
        shared = client.lock(
            _namespaced_key(key),
            timeout=settings.lock_ttl_seconds,
            blocking_timeout=remaining,
            thread_local=False,
        )
        try:
            acquired = shared.acquire()
        except RedisError as exc:
            prometheus_metrics.record_booking_lock("acquire", "error")
            logger.warning(
                "booking_lock_sync_failed",
                extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return
        if not acquired:
            raise self._blocked(key, wait)
        with self._guard:
            self._shared[key] = shared

    def acquire(self, key: str, timeout: Optional[float] = None) -> None:
        wait = settings.lock_timeout_seconds if timeout is None else timeout
        deadline = monotonic() + wait
        local = self._lock_for(key)
        if not local.acquire(timeout=wait):
            raise self._blocked(key, wait)
        try:
            self._acquire_shared(key, wait, max(0.0, deadline - monotonic()))
        except Exception:
            local.release()
            raise
        prometheus_metrics.record_booking_lock("acquire", "success")

    def _release_shared(self, key: str) -> None:
        with self._guard:
            shared = self._shared.pop(key, None)
        if shared is None:
            return
        try:
            shared.release()
        except LockError as exc:
            # TTL ran out and another process may already own the key
            prometheus_metrics.record_booking_lock("release", "expired")
            logger.warning("booking_lock_sync_expired", extra={"key": key, "error": str(exc)})
        except RedisError as exc:
            prometheus_metrics.record_booking_lock("release", "error")
            logger.warning(
                "booking_lock_sync_release_failed",
                extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
            )

    def release(self, key: str) -> None:
        local = self._lock_for(key)
        if not local.locked():
            prometheus_metrics.record_booking_lock("release", "not_found")
            return
        try:
            self._release_shared(key)
        finally:
            local.release()
        prometheus_metrics.record_booking_lock("release", "success")

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[str]:
        self.acquire(key, timeout=timeout)
        try:
            yield key
        finally:
            self.release(key)

    @contextmanager
    def hold_many(self, keys: Iterable[str], timeout: Optional[float] = None) -> Iterator[List[str]]:
        """Hold several keys at once, always acquired in sorted order."""
        ordered = sorted(set(keys))
        with ExitStack() as stack:
            for key in ordered:
                stack.enter_context(self.hold(key, timeout=timeout))
            yield ordered


lock_registry = KeyedLockRegistry()
