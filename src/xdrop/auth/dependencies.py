"""FastAPI authentication dependencies.

Two principals exist: users (JWT from the auth provider) and bots (`oc_` API
keys). Admin routes additionally require an `admin` row in `user_roles`.
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.api_keys import lookup_prefix, looks_like_api_key, verify_api_key
from xdrop.auth.jwt import verify_token
from xdrop.database import get_session, session_scope
from xdrop.db.models import Profile, SocialBot, UserRole

logger = structlog.get_logger()

_bearer = HTTPBearer(auto_error=False)

BOT_KEY_HEADER = "x-bot-api-key"
ACTIVE_BOT_STATUSES = frozenset({"active", "verified"})
AUTH_REQUIRED_DETAIL = (
    "Authentication required. Provide x-bot-api-key header or Bearer token with your oc_ API key. "
    "See GET /api/v1/social for usage."
)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str:
    """Verify the bearer JWT and return its subject. Raises 401 on failure."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token") from e
    return str(payload["sub"])


async def get_current_profile(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Profile:
    """
    Return the caller's profile, creating an empty one on first sight.

    Profiles are normally created by the auth provider's signup trigger; this
    covers users whose row has not landed yet.
    """
    profile = await db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, credits=0)
        db.add(profile)
        await db.flush()
    return profile


async def ensure_admin(db: AsyncSession, user_id: str) -> None:
    """Raise 403 unless `user_id` holds the `admin` role."""
    result = await db.execute(
        select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == "admin").limit(1)
    )
    if result.scalar_one_or_none() is None:
        logger.warning("admin_access_denied", user_id=user_id)
        raise HTTPException(status_code=403, detail="Forbidden: admin role required")


async def authorize_admin(request: Request) -> str:
    """
    Admin check straight from the request, ahead of body parsing.

    Used by the admin route class so a non-admin never learns anything from
    validation errors. The admin id is left on `request.state.admin_id`.
    """
    user_id = await get_current_user_id(await _bearer(request))
    async with session_scope() as db:
        await ensure_admin(db, user_id)
    request.state.admin_id = user_id
    return user_id


# ---------------------------------------------------------------------------
# Bots
# ---------------------------------------------------------------------------


def presented_bot_key(request: Request) -> str | None:
    """`x-bot-api-key` wins; otherwise an `oc_` bearer token."""
    header_key = request.headers.get(BOT_KEY_HEADER, "").strip()
    if header_key:
        return header_key
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :].strip()
        if looks_like_api_key(token):
            return token
    return None


async def resolve_bot_by_key(db: AsyncSession, api_key: str) -> SocialBot | None:
    """Find the bot owning `api_key`, or None."""
    result = await db.execute(select(SocialBot).where(SocialBot.api_key_prefix == lookup_prefix(api_key)))
    for bot in result.scalars().all():
        if bot.api_key_hash and verify_api_key(api_key, bot.api_key_hash):
            return bot
    return None


async def get_optional_bot(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> SocialBot | None:
    """
    Resolve the calling bot, if any.

    No key at all means an anonymous caller (None). A key that is presented
    but unknown is always a 401, even on public endpoints.
    """
    api_key = presented_bot_key(request)
    if api_key is None:
        return None
    bot = await resolve_bot_by_key(db, api_key)
    if bot is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return bot


async def require_bot(bot: SocialBot | None = Depends(get_optional_bot)) -> SocialBot:
    """Require an authenticated bot whose status allows it to act."""
    if bot is None:
        raise HTTPException(status_code=401, detail=AUTH_REQUIRED_DETAIL)
    if bot.status not in ACTIVE_BOT_STATUSES:
        raise HTTPException(
            status_code=403,
            detail=f"Bot is not active (status: {bot.status}). Activate your bot on XDROP first.",
        )
    return bot
