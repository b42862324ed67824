"""
Token Revocation using Redis.

Logged-out tokens are blacklisted until they would have expired anyway.
"""

import logging

from redis.exceptions import RedisError

from fleet_backend.app.core.config import settings

logger = logging.getLogger("fleet.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(redis, token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        redis: Redis client
        token: The JWT token string to revoke
        user_id: User ID who owns the token (stored for audit purposes)

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis.setex(f"{TOKEN_BLACKLIST_PREFIX}{token}", ttl_seconds, str(user_id))
        return True
    except RedisError as e:
        logger.warning("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(redis, token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open when Redis is unreachable: availability wins over revocation.
    """
    try:
        exists = await redis.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except RedisError as e:
        logger.warning("Error checking token revocation: %s", e)
        return False
