"""
Unit tests for the key-value stores.
"""

import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from redis.exceptions import ConnectionError as RedisConnectionError

from service_catalog.app.caching.store import InMemoryStore, RedisStore
from shared.errors import StoreUnavailable


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestInMemoryStore:
    """Test cases for InMemoryStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        return InMemoryStore(clock=clock)

    @pytest.mark.asyncio
    async def test_get_missing_key(self, store):
        """Test that unknown keys are absent."""
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, store):
        """Test reading back a stored value."""
        await store.set("key", b"value", 60)
        assert await store.get("key") == b"value"

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, store, clock):
        """Test that entries vanish once the TTL has elapsed."""
        await store.set("key", b"value", 60)

        clock.advance(59)
        assert await store.get("key") == b"value"

        clock.advance(1)
        assert await store.get("key") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_last_write_wins(self, store):
        """Test that a second write replaces the first."""
        await store.set("key", b"first", 60)
        await store.set("key", b"second", 60)
        assert await store.get("key") == b"second"

    @pytest.mark.asyncio
    async def test_stop_clears_entries(self, store):
        """Test that stopping the store drops all entries."""
        await store.set("key", b"value", 60)
        await store.stop()
        assert await store.get("key") is None

    @pytest.mark.asyncio
    async def test_expired_entries_are_swept_on_write(self, store, clock):
        """Test that unread expired entries do not accumulate."""
        for i in range(1000):
            await store.set(f"GET:/busca/titulo?titulo=q{i}", b"[]", 1)
            clock.advance(2)

        assert len(store) <= store.sweep_interval

    @pytest.mark.asyncio
    async def test_sweep_keeps_live_entries(self, clock):
        """Test that a sweep only drops expired entries."""
        store = InMemoryStore(clock=clock, sweep_interval=3)
        await store.set("short", b"1", 5)
        await store.set("long", b"2", 60)

        clock.advance(10)
        await store.set("new", b"3", 60)

        assert len(store) == 2
        assert await store.get("long") == b"2"
        assert await store.get("new") == b"3"


class TestRedisStore:
    """Test cases for RedisStore."""

    @pytest.fixture
    def store(self):
        store = RedisStore("redis://localhost:6379/0")
        store.redis = AsyncMock()
        return store

    @pytest.mark.asyncio
    async def test_get_delegates_to_redis(self, store):
        """Test get returns the raw Redis value."""
        store.redis.get.return_value = b"cached"

        assert await store.get("GET:/busca") == b"cached"
        store.redis.get.assert_called_once_with("GET:/busca")

    @pytest.mark.asyncio
    async def test_set_uses_setex(self, store):
        """Test set writes with an expiry."""
        await store.set("GET:/busca", b"payload", 3600)

        store.redis.setex.assert_called_once_with("GET:/busca", 3600, b"payload")

    @pytest.mark.asyncio
    async def test_get_error_raises_store_unavailable(self, store):
        """Test Redis read errors are reported as StoreUnavailable."""
        store.redis.get.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(StoreUnavailable) as exc_info:
            await store.get("GET:/busca")

        assert exc_info.value.operation == "get"

    @pytest.mark.asyncio
    async def test_set_error_raises_store_unavailable(self, store):
        """Test Redis write errors are reported as StoreUnavailable."""
        store.redis.setex.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(StoreUnavailable) as exc_info:
            await store.set("GET:/busca", b"payload", 60)

        assert exc_info.value.operation == "set"

    @pytest.mark.asyncio
    async def test_operations_before_start(self):
        """Test that an unstarted store reports itself unavailable."""
        store = RedisStore("redis://localhost:6379/0")

        with pytest.raises(StoreUnavailable):
            await store.get("key")

    @pytest.mark.asyncio
    async def test_start_failure(self):
        """Test that an unreachable Redis fails start with StoreUnavailable."""
        store = RedisStore("redis://localhost:6379/0")
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("connection refused")

        with patch("service_catalog.app.caching.store.redis.from_url", return_value=client):
            with pytest.raises(StoreUnavailable):
                await store.start()

    @pytest.mark.asyncio
    async def test_stop_closes_client(self, store):
        """Test that stop closes the client."""
        client = store.redis

        await store.stop()

        client.aclose.assert_called_once()
        assert store.redis is None

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        """Test health check success and failure."""
        assert await store.health_check() is True

        store.redis.ping.side_effect = RedisConnectionError("down")
        assert await store.health_check() is False
