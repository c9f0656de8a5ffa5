# sehat_rakshak/core/redis.py
"""
Shared Redis connection.

Only the prescription write path uses Redis (cross-process patient locks).
Without REDIS_URL, or when the server cannot be reached at first use, the
app keeps running and callers fall back to process-local behaviour.
"""

import logging
from typing import Optional

import redis
from redis.lock import Lock

from sehat_rakshak.core.config import get_settings

logger = logging.getLogger(__name__)

_UNSET = object()
_client: object = _UNSET


def get_redis_client() -> Optional[redis.Redis]:
    """Connected client, or None. The connection attempt is made once per process."""
    global _client

    if _client is not _UNSET:
        return _client  # type: ignore[return-value]

    url = get_settings().redis_url
    if not url:
        logger.debug("REDIS_URL not set. Using process-local locks.")
        _client = None
        return None

    try:
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=2, socket_timeout=2)
        client.ping()
    except redis.RedisError as e:
        logger.warning("Redis unreachable (%s). Using process-local locks.", e)
        _client = None
        return None

    logger.info("Redis connection established.")
    _client = client
    return client


def reset_redis_client() -> None:
    """Forget the cached connection so the next call reconnects."""
    global _client
    _client = _UNSET


def make_lock(key: str, *, timeout: float) -> Optional[Lock]:
    """
    A redis-py Lock on `key`, or None when Redis is unavailable.
    `timeout` is both the acquire wait and the lock's own expiry.
    """
    client = get_redis_client()
    if client is None:
        return None
    return client.lock(key, timeout=timeout, blocking_timeout=timeout)
