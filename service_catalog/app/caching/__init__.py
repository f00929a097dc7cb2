"""
Catalog caching package.

Provides the read-through cache placed in front of the catalog's read
endpoints, the key derivation it uses, and the key-value stores it can sit
on (Redis or process memory). Entries expire by TTL only; there is no
invalidation on writes.
"""

from .keys import canonical_query, derive_cache_key
from .read_through import CachedResponse, ReadThroughCache, validate_ttl
from .store import InMemoryStore, KeyValueStore, RedisStore

__all__ = [
    "CachedResponse",
    "InMemoryStore",
    "KeyValueStore",
    "ReadThroughCache",
    "RedisStore",
    "canonical_query",
    "derive_cache_key",
    "validate_ttl",
]
