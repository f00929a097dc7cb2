"""
Key-value stores with expiry used by the read-through cache.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import StoreUnavailable


class KeyValueStore(ABC):
    """Key-value store with per-key expiry.

    Implementations raise ``StoreUnavailable`` when the backend cannot be
    reached. Writes are last-write-wins per key.
    """

    async def start(self):
        """Open the store."""

    async def stop(self):
        """Close the store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        """Store a value that expires after ``ttl_seconds``."""

    async def health_check(self) -> bool:
        return True


class RedisStore(KeyValueStore):
    """Redis-backed key-value store."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("catalog.store.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Connect to Redis and verify the connection."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis store started", redis_url=self.redis_url)

        except Exception as e:
            self.logger.error("Failed to start Redis store", error=str(e))
            raise StoreUnavailable("start", str(e))

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis store stopped")

    def _client(self, operation: str) -> redis.Redis:
        if self.redis is None:
            raise StoreUnavailable(operation, "Redis store not started")
        return self.redis

    async def get(self, key: str) -> Optional[bytes]:
        client = self._client("get")
        try:
            return await client.get(key)
        except RedisError as e:
            raise StoreUnavailable("get", str(e), {"key": key})

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        client = self._client("set")
        try:
            await client.setex(key, ttl_seconds, value)
        except RedisError as e:
            raise StoreUnavailable("set", str(e), {"key": key})

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._client("ping").ping()
            return True
        except Exception:
            return False


class InMemoryStore(KeyValueStore):
    """Process-local key-value store.

    Entries are kept with their expiry timestamp and dropped lazily on read.
    Every ``sweep_interval`` writes the whole dict is purged of expired
    entries, so keys that are never read again do not accumulate. Operations
    never await, so they are atomic under a single event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.time, *, sweep_interval: int = 100):
        self.clock = clock
        self.sweep_interval = max(1, sweep_interval)
        self.logger = get_logger("catalog.store.memory")
        self._entries: Dict[str, Tuple[bytes, float]] = {}
        self._writes = 0

    async def stop(self):
        self._entries.clear()

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None

        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        now = self.clock()
        self._writes += 1
        if self._writes % self.sweep_interval == 0:
            self._purge_expired(now)

        self._entries[key] = (value, now + ttl_seconds)

    def _purge_expired(self, now: float) -> int:
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        if expired:
            self.logger.debug("Purged expired entries", count=len(expired), remaining=len(self._entries))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
