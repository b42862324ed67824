"""
Redis client initialization.

Redis backs the token revocation list. The client is handed to callers
through the get_redis dependency so tests can swap it out.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError
from fleet_backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the shared Redis client."""
    return redis_client


async def ping_redis(client=None) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    client = client or redis_client
    try:
        return await client.ping()
    except RedisError:
        return False
