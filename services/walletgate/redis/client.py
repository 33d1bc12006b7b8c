"""
Redis client management for the WalletGate API server.

Provides the async Redis client, an optimistic read-modify-write helper,
and health checking. Only initialized when the redis store backend is selected.
"""

import json
from collections.abc import Callable
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from walletgate.config import settings
from walletgate.logging_config import get_logger

logger = get_logger(__name__)

# Module-level client reference, initialized in lifespan
_redis: aioredis.Redis | None = None


class ConcurrentUpdateError(Exception):
    """Raised when an optimistic transaction keeps losing to concurrent writers."""

    def __init__(self, key: str, attempts: int) -> None:
        self.key = key
        self.attempts = attempts
        super().__init__(f"Gave up updating {key} after {attempts} conflicting attempts")


async def init_redis() -> None:
    """Initialize Redis connection pool."""
    global _redis  # noqa: PLW0603
    logger.info("Initializing Redis connection")
    _redis = aioredis.from_url(
        str(settings.redis_url),
        decode_responses=True,
    )
    # Test connection
    await _redis.ping()
    logger.info("Redis connection established")


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis  # noqa: PLW0603
    if _redis is not None:
        logger.info("Closing Redis connection pool")
        await _redis.aclose()
        _redis = None


def get_redis_client() -> aioredis.Redis:
    """Return the Redis client. Raises if not initialized."""
    if _redis is None:
        raise RuntimeError("Redis client not initialized; call init_redis() first")
    return _redis


async def watch_update(
    redis: aioredis.Redis,
    key: str,
    mutate: Callable[[dict[str, Any] | None], dict[str, Any] | None],
    *,
    ttl: int | None = None,
    keep_ttl: bool = False,
    max_attempts: int = 10,
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Atomically apply ``mutate`` to the JSON document stored at ``key``.

    Uses WATCH/MULTI so a concurrent write between the read and the write
    aborts the transaction and the mutation is re-applied to fresh data.
    ``mutate`` returning None leaves the key unchanged.

    Returns (previous, current) documents.
    """
    for _ in range(max_attempts):
        async with redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                previous = json.loads(raw) if raw is not None else None
                current = mutate(previous)
                if current is None:
                    await pipe.unwatch()
                    return previous, previous
                pipe.multi()
                pipe.set(key, json.dumps(current), ex=ttl, keepttl=keep_ttl)
                await pipe.execute()
                return previous, current
            except WatchError:
                logger.debug("Optimistic update conflict, retrying", key=key)
                continue
    raise ConcurrentUpdateError(key, max_attempts)


async def get_redis_health() -> bool:
    """Check Redis health for the readiness endpoint."""
    try:
        if _redis is None:
            return False
        await _redis.ping()
        return True
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return False
