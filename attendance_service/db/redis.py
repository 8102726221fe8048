"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured we create a connection
pool, otherwise ``redis_pool`` is None and the task queue falls back to
its in-memory implementation. Redis only carries the period-closure queue;
durable state lives in Postgres.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from attendance_service.core.config import SETTINGS

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
    """Startup/shutdown hook for Redis, mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; closures queue in memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Keep serving: reports and class closures do not need Redis.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
