"""
Redis Caching Layer

JSON cache for YouTube catalog responses (playlist metadata and pages). Every
catalog call spends Data API quota and playlists change rarely, so reads are
served from Redis for CACHE_TTL_PLAYLIST seconds.

Redis is optional. When it cannot be reached, reads miss and writes are
dropped; reconnection is attempted at most once per REDIS_RETRY_SECONDS so a
dead Redis does not add a connect timeout to every request.
"""
import json
import logging
import time
from typing import Any, Optional

import redis
from redis.exceptions import RedisError

from core.config import settings

logger = logging.getLogger(__name__)

REDIS_RETRY_SECONDS = 60

_redis_client: Optional[redis.Redis] = None
_last_failure: Optional[float] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Shared client, or None while Redis is unavailable."""
    global _redis_client, _last_failure

    if _redis_client is not None:
        return _redis_client
    if _last_failure is not None and time.monotonic() - _last_failure < REDIS_RETRY_SECONDS:
        return None

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            health_check_interval=30,
        )
        client.ping()
    except RedisError as e:
        _last_failure = time.monotonic()
        logger.warning(f"Redis unavailable: {e}. Catalog caching disabled for {REDIS_RETRY_SECONDS}s.")
        return None

    logger.info("Redis connection established")
    _redis_client = client
    _last_failure = None
    return _redis_client


def _drop_client(error: RedisError) -> None:
    # A failing connection mid-request puts us back into the retry window
    global _redis_client, _last_failure
    logger.warning(f"Redis error, disabling cache: {error}")
    _redis_client = None
    _last_failure = time.monotonic()


def cache_key(prefix: str, *parts: Any) -> str:
    """``prefix:part1:part2``, omitting parts that are None."""
    return ":".join([prefix, *(str(p) for p in parts if p is not None)])


def get_cache(key: str) -> Optional[Any]:
    """Decoded JSON for ``key``, or None on a miss or when Redis is down."""
    client = get_redis_client()
    if client is None:
        return None

    try:
        raw = client.get(key)
    except RedisError as e:
        _drop_client(e)
        return None

    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(f"Discarding undecodable cache entry {key}")
        return None


def set_cache(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """Store ``value`` as JSON. Returns False when nothing was written."""
    client = get_redis_client()
    if client is None:
        return False

    try:
        client.setex(key, ttl if ttl is not None else settings.CACHE_TTL_DEFAULT, json.dumps(value, default=str))
    except RedisError as e:
        _drop_client(e)
        return False
    return True
