"""Redis cache utility functions."""

from __future__ import annotations

import logging
import os

import redis

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None
_redis_failed = False


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if REDIS_URL is not configured or the connection fails.
    A failed connection is not retried for the lifetime of the process.
    """
    global _redis_client, _redis_failed

    if _redis_client is not None:
        return _redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url or _redis_failed:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        # Test connection
        client.ping()
        logger.info("Redis cache connected successfully")
        _redis_client = client
        return _redis_client
    except redis.RedisError as e:
        _redis_failed = True
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get_int(key: str) -> int | None:
    """Read an integer value, or None when missing or the cache is down."""
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        return int(value) if value is not None else None
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_delete(*keys: str) -> int:
    """Delete keys and return how many existed."""
    client = get_redis_client()
    if not client or not keys:
        return 0

    try:
        return int(client.delete(*keys))
    except redis.RedisError as e:
        logger.warning(f"Cache delete error for keys {keys}: {e}")
        return 0


def cache_bump(*keys: str, ttl: int = 86400) -> None:
    """Increment generation counters and refresh their TTL."""
    client = get_redis_client()
    if not client or not keys:
        return

    try:
        pipe = client.pipeline()
        for key in keys:
            pipe.incr(key)
            pipe.expire(key, ttl)
        pipe.execute()
    except redis.RedisError as e:
        logger.warning(f"Cache bump error for keys {keys}: {e}")


def cache_set_int_if_unchanged(
    key: str, value: int, *, guard: str, seen: int | None, ttl: int = 300
) -> bool:
    """
    Store an integer value only while ``guard`` still holds ``seen``.

    ``seen`` is the guard value read before ``value`` was computed (None when
    the guard was missing). The check and the write run in one WATCH/MULTI
    transaction, so a concurrent bump of the guard discards the write.
    """
    client = get_redis_client()
    if not client:
        return False

    try:
        with client.pipeline() as pipe:
            pipe.watch(guard)
            current = pipe.get(guard)
            if (int(current) if current is not None else None) != seen:
                return False
            pipe.multi()
            pipe.setex(key, ttl, int(value))
            pipe.execute()
        return True
    except redis.WatchError:
        return False
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False
