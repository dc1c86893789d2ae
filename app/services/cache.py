"""Read-through cache for certificate verification.

Third parties hit `GET /v1/certificates/verify/{code}` without a session,
possibly at high volume (a verification link printed on every PDF).
Certificates never change after issuance, so a positive lookup can be
cached for a long TTL with no invalidation path at all.  Misses are not
cached: a code that does not exist yet may exist a moment later.

Progress, grades and eligibility are NOT cached.  They are recomputed
from stored records on every read so the result can't drift when a
course's modules change.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.core.metrics import CACHE_OPERATIONS
from app.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...


class InMemoryCacheService:
    """In-memory cache for tests and dev.  TTL is not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._store.get(key)
        CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    # Keeps cache keys apart from the task queue's "tasks:" lists.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
