# app/config/redis.py
"""Redis configuration and connection setup"""
import redis
from typing import Optional

from app.config.settings import get_settings

settings = get_settings()

# Redis connection pool
_redis_pool: Optional[redis.ConnectionPool] = None


def get_redis_pool() -> redis.ConnectionPool:
    """Get or create Redis connection pool"""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=True,
            decode_responses=True,
        )
    return _redis_pool


def get_redis() -> redis.Redis:
    """Get Redis client from pool"""
    pool = get_redis_pool()
    return redis.Redis(connection_pool=pool)


# Redis key patterns for different data types
class RedisKeys:
    """Redis key patterns for consistent naming"""

    # Computed day view, one entry per owner and date
    AVAILABILITY_DAY = "availability:{owner_id}:day:{date}"
    AVAILABILITY_OWNER_PATTERN = "availability:{owner_id}:day:*"

    # Bumped on every invalidation; a reader only stores its view if neither moved
    AVAILABILITY_DAY_GENERATION = "availability:{owner_id}:gen:{date}"
    AVAILABILITY_OWNER_GENERATION = "availability:{owner_id}:gen"
