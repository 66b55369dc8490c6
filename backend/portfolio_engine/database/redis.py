"""
Redis cache connection and operations.

Serves two purposes for the engine:
- JSON cache for read-mostly fund catalog listings
- Owner-token distributed locks serializing mutations of one holding
"""

import json
import secrets
from typing import Any

import redis.asyncio as redis
import structlog

from ..core.exceptions import CacheError

logger = structlog.get_logger()

# Delete the key only if it still holds our token (a lock that expired and was
# re-acquired by another worker must not be released by us).
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisCache:
    """Redis connection manager with async support."""

    def __init__(self) -> None:
        self.client: redis.Redis | None = None

    async def connect(self, redis_url: str) -> None:
        """Establish connection to Redis."""
        try:
            self.client = redis.from_url(redis_url, decode_responses=True)

            # Test connection
            await self.client.ping()

            logger.info("Redis connection established", url=redis_url)

        except Exception as e:
            logger.error("Failed to connect to Redis", error=str(e))
            raise CacheError(
                f"Redis connection failed: {str(e)}",
                original_error=type(e).__name__,
            ) from e

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            logger.info("Redis connection closed")

    async def health_check(self) -> dict[str, bool | str]:
        """Check Redis connection health."""
        try:
            if not self.client:
                return {"connected": False, "error": "No client connection"}

            await self.client.ping()
            info = await self.client.info()

            return {
                "connected": True,
                "version": info.get("redis_version", "unknown"),
                "memory_usage": info.get("used_memory_human", "unknown"),
            }

        except Exception as e:
            logger.error("Redis health check failed", error=str(e))
            return {"connected": False, "error": str(e)}

    def _require_client(self) -> redis.Redis:
        if not self.client:
            raise CacheError("Redis connection not established")
        return self.client

    async def get(self, key: str) -> Any | None:
        """Get JSON value from Redis cache.

        Cache failures are logged and treated as a miss.
        """
        client = self._require_client()

        try:
            value = await client.get(key)
            if value:
                logger.debug("Cache HIT", cache_key=key)
                try:
                    return json.loads(value)
                except json.JSONDecodeError:
                    return value  # Return as plain string
            logger.debug("Cache MISS", cache_key=key)
            return None
        except Exception as e:
            logger.error("Redis get operation failed", key=key, error=str(e))
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
    ) -> bool:
        """Set value in Redis cache with optional TTL."""
        client = self._require_client()

        try:
            json_value = json.dumps(value, default=str)
            await client.set(key, json_value, ex=ttl_seconds)
            return True
        except Exception as e:
            logger.error("Redis set operation failed", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from Redis cache."""
        client = self._require_client()

        try:
            result: int = await client.delete(key)
            return result > 0
        except Exception as e:
            logger.error("Redis delete operation failed", key=key, error=str(e))
            return False

    # =========================================================================
    # Distributed Locks
    # =========================================================================

    async def acquire_lock(
        self,
        lock_key: str,
        lock_ttl_seconds: int = 30,
    ) -> str | None:
        """
        Acquire a distributed lock using Redis SET NX EX pattern.

        Args:
            lock_key: Unique key for the lock
            lock_ttl_seconds: Lock expiry time (prevents deadlocks)

        Returns:
            Owner token if acquired, None if already held by another worker

        Raises:
            CacheError: If Redis is unreachable (the caller cannot tell whether
                the lock is free, so it must not proceed unlocked)
        """
        client = self._require_client()
        token = secrets.token_hex(16)

        try:
            # NX = only set if not exists, EX = expiry in seconds
            result = await client.set(
                lock_key,
                token,
                nx=True,
                ex=lock_ttl_seconds,
            )
        except Exception as e:
            logger.error("Failed to acquire lock", lock_key=lock_key, error=str(e))
            raise CacheError(
                f"Lock acquisition failed: {str(e)}", lock_key=lock_key
            ) from e

        if result:
            logger.debug("Lock acquired", lock_key=lock_key, ttl=lock_ttl_seconds)
            return token
        return None

    async def release_lock(self, lock_key: str, token: str) -> bool:
        """
        Release a distributed lock held with the given token.

        Args:
            lock_key: The lock key to release
            token: Owner token returned by acquire_lock

        Returns:
            True if released, False if expired or owned by someone else
        """
        client = self._require_client()

        try:
            result = await client.eval(_RELEASE_LOCK_SCRIPT, 1, lock_key, token)
            released = bool(result)
            if released:
                logger.debug("Lock released", lock_key=lock_key)
            else:
                logger.warning("Lock expired before release", lock_key=lock_key)
            return released
        except Exception as e:
            logger.error("Failed to release lock", lock_key=lock_key, error=str(e))
            return False
