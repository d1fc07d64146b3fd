"""
Redis Module - Upstash Redis client

Provides a singleton async Upstash Redis client used for the per-session
cart record (creation context and cart id).
"""

import os
from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis


# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


# Singleton instance
_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


# Redis key prefixes for organization
class RedisKeys:
    """Redis key prefixes for different data types."""

    # Context the session's cart was created under
    CART_CONTEXT = "cart:context:"  # cart:context:{session_id}

    # Remote cart id bound to the session
    CART_ID = "cart:id:"  # cart:id:{session_id}

    @staticmethod
    def cart_context_key(session_id: str) -> str:
        return f"{RedisKeys.CART_CONTEXT}{session_id}"

    @staticmethod
    def cart_id_key(session_id: str) -> str:
        return f"{RedisKeys.CART_ID}{session_id}"


# TTL constants (in seconds)
class TTL:
    """Time-to-live constants for Redis keys."""

    # Remote carts expire after ~10 days of inactivity
    CART_CONTEXT = 864000
    CART_ID = 864000
