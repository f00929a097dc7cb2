"""
Read-through cache middleware with TTL expiry.

``ReadThroughCache.wrap`` turns a read handler into one that first looks the
request up in a key-value store. Hits are served from the store without
calling the handler; misses call the handler and store successful responses
for ``ttl_seconds``. The store is fail-open: read errors count as misses and
write errors are logged and dropped. Handler errors propagate untouched and
are never cached.
"""

import asyncio
import functools
import inspect
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set, Union, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import ConfigurationError
from .keys import derive_cache_key
from .store import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class CachedResponse:
    """Response value produced by a cacheable handler."""

    body: Any
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


Handler = Callable[[Any], Union[CachedResponse, Awaitable[CachedResponse]]]
WrappedHandler = Callable[[Any], Awaitable[CachedResponse]]


def validate_ttl(ttl_seconds: Any) -> int:
    """Return ``ttl_seconds`` if it is a positive integer, else raise."""
    if ttl_seconds is None:
        raise ConfigurationError("Cache TTL is required")

    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int):
        raise ConfigurationError(
            "Cache TTL must be an integer number of seconds",
            {"ttl_seconds": repr(ttl_seconds)}
        )

    if ttl_seconds <= 0:
        raise ConfigurationError(
            "Cache TTL must be positive",
            {"ttl_seconds": ttl_seconds}
        )

    return ttl_seconds


class ReadThroughCache:
    """Read-through cache in front of request handlers."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("catalog.cache")
        self._pending_writes: Set[asyncio.Task] = set()

    def wrap(self, handler: Handler, ttl_seconds: int, *, name: Optional[str] = None) -> WrappedHandler:
        """Wrap ``handler`` so successful responses are cached for ``ttl_seconds``.

        Raises ``ConfigurationError`` immediately when the TTL is missing or
        not a positive integer. ``name`` labels metrics and logs and defaults
        to the handler's ``__name__``.
        """
        ttl = validate_ttl(ttl_seconds)
        route = name or getattr(handler, "__name__", "handler")

        @functools.wraps(handler)
        async def wrapped(request: Any) -> CachedResponse:
            key = derive_cache_key(request)
            self.logger.debug("Checking cache", key=key, route=route)

            cached = await self._lookup(key)
            if cached is not None:
                self.logger.info("Cache hit", key=key, route=route)
                self._count("cache_hits_total", route)
                return cached

            self.logger.info("Cache miss", key=key, route=route)
            self._count("cache_misses_total", route)

            result = handler(request)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, CachedResponse):
                result = CachedResponse(body=result)

            if not result.ok:
                self.logger.debug(
                    "Not caching unsuccessful response",
                    key=key,
                    status_code=result.status_code
                )
                return result

            payload = self._encode(key, result, ttl)
            if payload is None:
                return result

            # A miss returns the same decoded body a later hit would
            result = CachedResponse(
                body=json.loads(payload)["body"],
                status_code=result.status_code
            )

            # The write outlives a cancelled caller; later requests still benefit
            await asyncio.shield(self._schedule_write(key, payload, ttl))
            return result

        return wrapped

    async def _lookup(self, key: str) -> Optional[CachedResponse]:
        """Return the live cached response for ``key``, or None."""
        try:
            raw = await self._timed("get", self.store.get(key))
        except Exception as e:
            self.logger.error("Cache lookup failed", key=key, error=str(e))
            self._record_error("cache_store_read")
            return None

        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            expires_at = float(envelope["expires_at"])
            response = CachedResponse(
                body=envelope["body"],
                status_code=int(envelope["status_code"])
            )
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning("Discarding undecodable cache entry", key=key, error=str(e))
            return None

        if self.clock() >= expires_at:
            return None

        return response

    def _schedule_write(self, key: str, payload: bytes, ttl: int) -> asyncio.Task:
        task = asyncio.ensure_future(self._write(key, payload, ttl))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
        return task

    def _encode(self, key: str, response: CachedResponse, ttl: int) -> Optional[bytes]:
        """Serialize ``response`` into a store envelope, or None if it cannot be."""
        try:
            return json.dumps({
                "status_code": response.status_code,
                "body": response.body,
                "expires_at": self.clock() + ttl,
            }).encode("utf-8")
        except (TypeError, ValueError) as e:
            self.logger.warning("Response body is not serializable, skipping cache", key=key, error=str(e))
            return None

    async def _write(self, key: str, payload: bytes, ttl: int) -> bool:
        """Store ``payload`` under ``key``. Never raises on store failure."""
        try:
            self.logger.debug("Setting cache key", key=key, ttl=ttl)
            await self._timed("set", self.store.set(key, payload, ttl))
            self.logger.debug("Cache set", key=key, ttl=ttl)
            return True
        except Exception as e:
            self.logger.error("Failed to set cache key", key=key, error=str(e))
            self._record_error("cache_store_write")
            return False

    async def _timed(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        if self.metrics is None:
            return await awaitable
        with self.metrics.time_operation("cache_store_duration_seconds", operation=operation):
            return await awaitable

    def _count(self, metric_name: str, route: str):
        if self.metrics:
            self.metrics.increment_counter(metric_name, route=route)

    def _record_error(self, error_type: str):
        if self.metrics:
            self.metrics.record_error(error_type)

    async def close(self):
        """Wait for cache writes still in flight."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
