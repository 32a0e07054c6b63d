"""Redis connection pool.

Redis carries rate-limit counters, the arq job queue and the per-user
notification channels. The ledger itself never depends on Redis.
"""

import json
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        socket_timeout=2.0,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def get_redis_or_none() -> redis.Redis | None:
    """Get the Redis client, or None when running without Redis (tests, scripts)."""
    return _pool


async def publish_user_event(user_id: int, event: str, data: dict[str, Any]) -> bool:
    """Publish an event on ``ws:user:{user_id}``. Returns False if nothing was sent."""
    if _pool is None:
        return False
    try:
        await _pool.publish(f"ws:user:{user_id}", json.dumps({"event": event, "data": data}, default=str))
    except Exception:
        logger.warning("user_event_publish_failed", user_id=user_id, event_type=event, exc_info=True)
        return False
    return True
