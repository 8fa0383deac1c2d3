"""Redis read-through cache for requirement trees.

The requirement detail payload (roles, forwardings, assignments, stages) is
cached under ``requirement:{id}``. Every mutating workflow call invalidates the
key of the requirement it touched once its transaction commits.

A read that loaded the tree before that commit can still write its older copy
after the invalidation; such an entry lives at most CACHE_REQUIREMENT_TTL
seconds.
"""

import json
import logging
from typing import Any, Callable, Optional

import redis
from redis.connection import ConnectionPool
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from app.config import Settings

logger = logging.getLogger(__name__)

REQUIREMENT_KEY_PREFIX = "requirement"

_redis_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type((ConnectionError, TimeoutError)),
    reraise=True,
)


def requirement_key(requirement_id) -> str:
    return f"{REQUIREMENT_KEY_PREFIX}:{requirement_id}"


class CacheManager:
    """
    Redis cache manager:
    - Connection pooling
    - Retry with exponential backoff on transient connection errors
    - Graceful degradation (no caching) when Redis is down
    """

    def __init__(self, settings: Settings):
        """Initialize cache manager with settings."""
        self.settings = settings
        self.enabled = settings.CACHE_ENABLED
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._is_connected = False

        logger.info(f"CacheManager initialized. Enabled: {self.enabled}")

    def connect(self) -> None:
        """Establish Redis connection; on failure switch to degraded mode."""
        if not self.enabled:
            logger.info("Cache is disabled. Skipping Redis connection.")
            return

        try:
            self._pool = ConnectionPool(
                host=self.settings.REDIS_HOST,
                port=self.settings.REDIS_PORT,
                db=self.settings.REDIS_DB,
                password=self.settings.REDIS_PASSWORD or None,
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
                socket_timeout=self.settings.REDIS_SOCKET_TIMEOUT,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            self._client.ping()
            self._is_connected = True

            logger.info(
                f"Redis cache connected to {self.settings.REDIS_HOST}:{self.settings.REDIS_PORT}"
            )

        except Exception as e:
            logger.error(f"Failed to connect to Redis cache: {e}")
            logger.warning("Cache will operate in degraded mode (no caching)")
            self._is_connected = False
            self.enabled = False

    def disconnect(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self._client:
            try:
                self._client.close()
            except Exception as e:
                logger.error(f"Error closing Redis connection: {e}")

        if self._pool:
            try:
                self._pool.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting Redis pool: {e}")

        self._is_connected = False

    @property
    def active(self) -> bool:
        return self.enabled and self._client is not None

    @_redis_retry
    def get(self, key: str) -> Optional[Any]:
        """Cached value (JSON-decoded) or None on miss/error."""
        if not self.active:
            return None

        try:
            value = self._client.get(key)
            if value:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"Cache MISS: {key}")
            return None

        except json.JSONDecodeError as e:
            logger.error(f"Failed to deserialize cached value for key '{key}': {e}")
            self.delete(key)
            return None

        except (ConnectionError, TimeoutError):
            raise

        except RedisError as e:
            logger.warning(f"Redis error getting key '{key}': {e}. Continuing without cache.")
            return None

    @_redis_retry
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable value with TTL (seconds)."""
        if not self.active:
            return False

        try:
            ttl = ttl or self.settings.CACHE_DEFAULT_TTL
            result = self._client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return bool(result)

        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize value for key '{key}': {e}")
            return False

        except (ConnectionError, TimeoutError):
            raise

        except RedisError as e:
            logger.warning(f"Redis error setting key '{key}': {e}. Continuing without cache.")
            return False

    @_redis_retry
    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self.active:
            return False

        try:
            result = self._client.delete(key)
            logger.debug(f"Cache DELETE: {key}")
            return bool(result)

        except (ConnectionError, TimeoutError):
            raise

        except RedisError as e:
            logger.error(f"Redis error deleting key '{key}': {e}")
            return False

    async def get_or_load(self, key: str, loader: Callable, ttl: Optional[int] = None) -> Any:
        """Read-through: cached value, or await loader(), cache and return it."""
        try:
            cached_value = self.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for '{key}': {e}")
            cached_value = None
        if cached_value is not None:
            return cached_value

        value = await loader()
        if value is not None:
            try:
                self.set(key, value, ttl)
            except RedisError as e:
                logger.warning(f"Cache write failed for '{key}': {e}")
        return value

    def invalidate_requirement(self, requirement_id) -> None:
        """Drop the cached tree after a mutation touching this requirement."""
        try:
            self.delete(requirement_key(requirement_id))
        except RedisError as e:
            # A stale entry expires with its TTL
            logger.warning(f"Cache invalidation failed for requirement {requirement_id}: {e}")

    def get_stats(self) -> dict:
        """Cache statistics for the health endpoint."""
        if not self.active:
            return {"enabled": False, "connected": False}

        try:
            info = self._client.info("stats")
            hits = info.get("keyspace_hits", 0)
            misses = info.get("keyspace_misses", 0)
            return {
                "enabled": True,
                "connected": self._is_connected,
                "keyspace_hits": hits,
                "keyspace_misses": misses,
                "hit_rate": hits / (hits + misses) if (hits + misses) > 0 else 0,
            }

        except Exception as e:
            logger.error(f"Error getting cache stats: {e}")
            return {"enabled": True, "connected": False, "error": str(e)}


# Singleton instance (initialized by main.py)
_cache_manager_instance: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get the global cache manager instance, creating a disconnected one if needed."""
    global _cache_manager_instance
    if _cache_manager_instance is None:
        from app.config import settings

        _cache_manager_instance = CacheManager(settings)
    return _cache_manager_instance


def set_cache_manager(manager: CacheManager) -> None:
    """Set the global cache manager instance."""
    global _cache_manager_instance
    _cache_manager_instance = manager
