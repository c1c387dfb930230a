"""
HS256 JWT handling for user sessions.

Tokens are minted by the hosted auth provider and signed with the project's
shared JWT secret. The `sub` claim carries the user id, which is also the
primary key of the user's row in `profiles`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from xdrop.config import get_settings


def create_access_token(user_id: str, *, email: str | None = None, role: str = "authenticated") -> str:
    """
    Create an access token in the auth provider's format.

    Used by tooling and tests; production tokens come from the auth provider.

    Args:
        user_id: The user's id (becomes `sub`).
        email: Optional email claim.
        role: Provider role claim.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode a user JWT.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)

    return payload
