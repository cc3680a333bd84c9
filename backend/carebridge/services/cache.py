"""
Redis caching service.

Caches public, non-PHI lookups:
- therapist directory pages
- computed availability slots per therapist/date/session type
- community post list pages

Falls back to no-cache whenever Redis is unreachable or caching is
disabled, so callers never need to branch on cache health.
"""

import json
import logging
import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import redis
from redis.exceptions import RedisError
from redis.lock import Lock

from ..core.config import settings


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheService:
    """
    Redis-based caching service with fallback to no-cache.

    TTLs:
    - therapist directory: ``cache_ttl_directory``
    - slots: ``cache_ttl_slots``
    - post lists: ``cache_ttl_posts``
    """

    PREFIX = "carebridge"
    PREFIX_DIRECTORY = "carebridge:directory"
    PREFIX_SLOTS = "carebridge:slots"
    PREFIX_POSTS = "carebridge:posts"

    def __init__(self):
        self._redis: Optional[redis.Redis] = None
        self._connected = False
        self._connect()

    def _connect(self) -> None:
        if not settings.cache_enabled:
            logger.info("Caching disabled by configuration")
            return

        try:
            self._redis = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            self._redis.ping()
            self._connected = True
            logger.info("Redis cache connected successfully")
        except RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Operating without cache.")
            self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._redis is not None

    def _ensure_connection(self) -> bool:
        """Ensure Redis connection is active, attempt reconnect if needed."""
        if not settings.cache_enabled:
            return False

        if self.is_connected:
            try:
                self._redis.ping()
                return True
            except RedisError:
                self._connected = False

        self._connect()
        return self.is_connected

    # ==========================================================================
    # Primitives
    # ==========================================================================

    def get(self, key: str) -> Optional[Any]:
        if not self._ensure_connection():
            return None

        try:
            value = self._redis.get(key)
            if value:
                return json.loads(value)
            return None
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serialisable value. Returns False when not cached."""
        if not self._ensure_connection():
            return False

        try:
            serialized = json.dumps(value, default=str)
            if ttl:
                self._redis.setex(key, ttl, serialized)
            else:
                self._redis.set(key, serialized)
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self._ensure_connection():
            return False

        try:
            self._redis.delete(key)
            return True
        except RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching ``pattern`` (e.g. ``carebridge:slots:*``)."""
        if not self._ensure_connection():
            return 0

        try:
            keys = list(self._redis.scan_iter(match=pattern))
            if keys:
                return self._redis.delete(*keys)
            return 0
        except RedisError as e:
            logger.warning(f"Cache delete pattern error for {pattern}: {e}")
            return 0

    # ==========================================================================
    # Stampede Prevention
    # ==========================================================================

    def acquire_lock(self, lock_name: str, timeout: int = 10) -> Optional[Lock]:
        if not self._ensure_connection():
            return None

        try:
            lock = self._redis.lock(f"lock:{lock_name}", timeout=timeout, blocking_timeout=1)
            if lock.acquire(blocking=True):
                return lock
            return None
        except RedisError as e:
            logger.warning(f"Failed to acquire lock {lock_name}: {e}")
            return None

    def release_lock(self, lock: Optional[Lock]) -> None:
        if lock:
            try:
                lock.release()
            except RedisError as e:
                logger.warning(f"Failed to release lock: {e}")

    def get_or_compute(self, key: str, compute_func: Callable[[], T], ttl: int = 60) -> T:
        """
        Return the cached value or compute, store and return it.

        Without Redis this simply calls ``compute_func``. With Redis, a lock
        keeps concurrent misses from computing the same value twice.
        """
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value

        if not self.is_connected:
            return compute_func()

        lock = self.acquire_lock(key)
        if lock:
            try:
                cached_value = self.get(key)
                if cached_value is not None:
                    return cached_value
                value = compute_func()
                self.set(key, value, ttl=ttl)
                return value
            finally:
                self.release_lock(lock)

        # Another worker is computing; give it a moment then compute ourselves.
        time.sleep(0.2)
        cached_value = self.get(key)
        return cached_value if cached_value is not None else compute_func()

    # ==========================================================================
    # Keys
    # ==========================================================================

    def directory_key(self, specialty: Optional[str], page: int, limit: int) -> str:
        return f"{self.PREFIX_DIRECTORY}:{(specialty or 'all').lower()}:{page}:{limit}"

    def slots_key(self, therapist_id: Any, date: Any, session_type_id: Any, tz: str) -> str:
        return f"{self.PREFIX_SLOTS}:{therapist_id}:{date}:{session_type_id}:{tz}"

    def posts_key(self, **params: Any) -> str:
        parts = [f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, "")]
        return f"{self.PREFIX_POSTS}:{'&'.join(parts) or 'all'}"

    # ==========================================================================
    # Invalidation
    # ==========================================================================

    def invalidate_slots(self, therapist_id: Any) -> None:
        self.delete_pattern(f"{self.PREFIX_SLOTS}:{therapist_id}:*")
        logger.debug(f"Slot cache invalidated for therapist {therapist_id}")

    def invalidate_directory(self) -> None:
        self.delete_pattern(f"{self.PREFIX_DIRECTORY}:*")

    def invalidate_posts(self) -> None:
        self.delete_pattern(f"{self.PREFIX_POSTS}:*")
        logger.debug("Post list cache invalidated")

    def invalidate_all(self) -> None:
        self.delete_pattern(f"{self.PREFIX}:*")
        logger.info("All caches invalidated")

    # ==========================================================================
    # Health
    # ==========================================================================

    def health_check(self) -> dict:
        if not self._ensure_connection():
            return {
                "status": "unavailable",
                "connected": False,
                "enabled": settings.cache_enabled,
            }

        try:
            latency_start = time.time()
            self._redis.ping()
            latency_ms = (time.time() - latency_start) * 1000
            info = self._redis.info(section="memory")
            return {
                "status": "healthy",
                "connected": True,
                "latency_ms": round(latency_ms, 2),
                "used_memory": info.get("used_memory_human", "unknown"),
            }
        except RedisError as e:
            return {"status": "unhealthy", "connected": False, "error": str(e)}


_cache_service: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Global cache service instance, created on first use."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service


def cached(key_func: Callable[..., str], ttl: int = 60):
    """
    Decorator to cache function results.

    Example:
        @cached(key_func=lambda specialty: f"carebridge:directory:{specialty}", ttl=60)
        def load_directory(specialty: str) -> list:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return get_cache().get_or_compute(key_func(*args, **kwargs), lambda: func(*args, **kwargs), ttl=ttl)
        return wrapper
    return decorator
