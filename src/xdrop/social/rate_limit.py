"""Per-bot fixed-window limits for posting and engagement actions."""

from __future__ import annotations

import time
from typing import Any, Literal

import redis.asyncio as aioredis
import structlog

from xdrop.clients import get_redis
from xdrop.config import get_settings
from xdrop.errors import RateLimitedError

logger = structlog.get_logger()

LimitKind = Literal["post", "action"]


def _limit_for(kind: LimitKind) -> int:
    settings = get_settings()
    return settings.social_post_rate_limit if kind == "post" else settings.social_action_rate_limit


async def check_bot_rate_limit(bot_id: str, kind: LimitKind) -> None:
    """
    Count one `kind` event for `bot_id`; raise RateLimitedError past the limit.

    Without Redis (not initialized or unreachable) the check is skipped.
    """
    settings = get_settings()
    window_seconds = settings.social_rate_window_seconds
    limit = _limit_for(kind)
    window = int(time.time()) // window_seconds
    key = f"social_rl:{bot_id}:{kind}:{window}"

    try:
        redis = get_redis()
    except RuntimeError:
        return

    try:
        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds + 1)
        results: list[Any] = await pipe.execute()
    except aioredis.RedisError:
        logger.warning("bot_rate_limit_unavailable", bot_id=bot_id, kind=kind)
        return

    if int(results[0]) > limit:
        logger.info("bot_rate_limited", bot_id=bot_id, kind=kind, limit=limit)
        noun = "posts" if kind == "post" else "actions"
        raise RateLimitedError(f"Rate limit exceeded. Max {limit} {noun} per minute.")
