"""
JWT token utilities for authentication.

Tokens carry the account identity (sub, user_id, role, agent_id) so the
access guards can authorize without a database round trip. Blocking is
enforced separately through the revocation list.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from paygate.app.core.config import settings

REQUIRED_CLAIMS = ("sub", "user_id", "role")


def token_claims(user) -> Dict[str, Any]:
    """Build the claim set for an account."""
    return {
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
        "agent_id": user.agent_id,
    }


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode, usually from token_claims()
        expires_delta: Lifetime override; defaults to access_token_expire_minutes

    Returns:
        Encoded JWT string
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = {**data, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate an access token.

    Returns None for a bad signature, an expired token, or a token missing
    any of the identity claims.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    if any(payload.get(claim) in (None, "") for claim in REQUIRED_CLAIMS):
        return None
    return payload
