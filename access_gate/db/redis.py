"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a pooled async client is
created at import; when it is None, the audit queue falls back to an
in-memory implementation and no Redis server is needed.

Redis only carries the audit queue.  Nothing on the authorization path
reads from it, so a Redis outage can delay audit rows but can never
change an access decision.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from access_gate.core.config import SETTINGS

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
    """Startup/shutdown hook for Redis — mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured — audit queue is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        # Audit delivery is best-effort; start anyway and let enqueue
        # failures be logged per entry.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
