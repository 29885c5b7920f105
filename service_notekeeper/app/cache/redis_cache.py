"""
Redis caching layer for Notekeeper.
"""

from typing import Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from notekeeper_shared.logging import get_logger


class CacheStore(Protocol):
    """Key/value store with per-key expiry.

    Implementations never raise on the request path: a failed ``get`` reads
    as a miss, a failed ``set`` or ``delete`` returns ``False``.
    """

    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        ...

    async def delete(self, key: str) -> bool:
        ...


class RedisCache:
    """Redis-backed cache store holding serialized envelopes."""

    def __init__(
        self,
        host: str,
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.logger = get_logger("notekeeper.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Open the shared Redis client."""
        self.redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )

        # The client reconnects lazily, so an unreachable server only shows up
        # as misses on the request path.
        try:
            await self.redis.ping()
            self.logger.info("Connected to Redis", host=self.host, port=self.port)
        except RedisError as e:
            self.logger.error("Redis connection error", host=self.host, port=self.port, error=str(e))

    async def stop(self):
        """Close the shared Redis client."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    async def get(self, key: str) -> Optional[bytes]:
        """Get a cached value, or None on miss or connection error."""
        if self.redis is None:
            self.logger.warning("Redis cache not started", cache_key=key)
            return None
        try:
            return await self.redis.get(key)
        except RedisError as e:
            self.logger.error("Redis connection error", operation="get", cache_key=key, error=str(e))
            return None

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """Store a value with an expiry."""
        if self.redis is None:
            self.logger.warning("Redis cache not started", cache_key=key)
            return False
        try:
            await self.redis.set(key, value, ex=ttl_seconds)
            self.logger.debug("Cached value", cache_key=key, ttl=ttl_seconds)
            return True
        except RedisError as e:
            self.logger.error("Redis connection error", operation="set", cache_key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        """Drop a cached value."""
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.delete(key))
        except RedisError as e:
            self.logger.error("Redis connection error", operation="delete", cache_key=key, error=str(e))
            return False

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except RedisError:
            return False
