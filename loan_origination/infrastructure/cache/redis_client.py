"""Redis client for the token blacklist"""

import redis

from loan_origination.config import Settings


def create_redis_client(settings: Settings) -> redis.Redis:
    """
    Build a Redis client with short socket timeouts.

    Blacklist lookups fail open, so a slow or unreachable cache must not
    hold a request longer than `redis_timeout_seconds`.
    """
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        socket_timeout=settings.redis_timeout_seconds,
        socket_connect_timeout=settings.redis_timeout_seconds,
        decode_responses=True,
    )
