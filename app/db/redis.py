"""Redis connection pool.

Mirrors engine.py: with REDIS_URL set a shared async pool is created at
import time; without it `redis_pool` is None and the verification cache
and task queue fall back to in-memory implementations.

Redis holds only disposable data here: cached verification lookups
(rebuilt from Postgres on a miss) and pending re-evaluation tasks (lost
tasks only delay a check that every request repeats anyway).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Ping on startup, close the pool on shutdown.

    An unreachable Redis is logged, not fatal: the service starts and
    /health reports redis as degraded until it comes back.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured — cache and task queue are in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
