"""
Cache package for the Notekeeper service.

Provides the cache-store contract, a Redis-backed implementation holding
serialized envelopes with a fixed TTL, and the key derivation that keeps
user and note entries in separate namespaces.
"""

from .keys import derive_key, USER_CACHE_PREFIX, NOTE_CACHE_PREFIX
from .redis_cache import CacheStore, RedisCache

__all__ = [
    "derive_key",
    "USER_CACHE_PREFIX",
    "NOTE_CACHE_PREFIX",
    "CacheStore",
    "RedisCache",
]
