"""
Token Revocation System using Redis.

Implements token blacklisting to immediately invalidate JWT tokens
when users are blocked or logged out.
"""

import logging

from redis.exceptions import RedisError

from paygate.app.core.redis_client import get_redis
from paygate.app.core.config import settings

logger = logging.getLogger("paygate.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        redis = await get_redis()
        # Tokens auto-expire anyway, so the blacklist entry only needs to outlive them
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis.setex(f"{TOKEN_BLACKLIST_PREFIX}{token}", ttl_seconds, str(user_id))
        return True
    except RedisError:
        logger.exception("Error revoking token", extra={"user_id": user_id})
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Args:
        token: JWT token string to check

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        redis = await get_redis()
        exists = await redis.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except RedisError:
        logger.exception("Error checking token revocation")
        # Fail-open: Redis outage must not lock every merchant out
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """
    Revoke all active tokens for a specific user.

    Called when a user is blocked to immediately terminate all sessions.
    Any token validation checks this flag.

    Args:
        user_id: User ID whose tokens should be revoked

    Returns:
        True if successful
    """
    try:
        redis = await get_redis()
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis.setex(f"{USER_TOKENS_PREFIX}{user_id}:revoked", ttl_seconds, "1")
        return True
    except RedisError:
        logger.exception("Error revoking all tokens", extra={"user_id": user_id})
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """
    Check if all tokens for a user have been revoked.

    Args:
        user_id: User ID to check

    Returns:
        True if all user tokens are revoked, False otherwise
    """
    try:
        redis = await get_redis()
        exists = await redis.exists(f"{USER_TOKENS_PREFIX}{user_id}:revoked")
        return exists > 0
    except RedisError:
        logger.exception("Error checking user token revocation", extra={"user_id": user_id})
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """
    Clear the global token revocation flag for a user.

    Called when a blocked user is unblocked.

    Args:
        user_id: User ID to clear revocation for

    Returns:
        True if successful
    """
    try:
        redis = await get_redis()
        await redis.delete(f"{USER_TOKENS_PREFIX}{user_id}:revoked")
        return True
    except RedisError:
        logger.exception("Error clearing token revocation", extra={"user_id": user_id})
        return False
