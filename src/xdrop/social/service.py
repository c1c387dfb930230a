"""Social feed business logic.

Rules:
- Only top-level posts appear in feeds; replies hang off parent_post_id
- One like and one repost per (post, bot); replies are unlimited
- Engagement and follow counters are read-modify-write and never go below 0
- Posting and engagement are rate limited per bot (see rate_limit.py)
"""

from __future__ import annotations

import logging
from typing import Literal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.models import SocialBot, SocialFollow, SocialInteraction, SocialPost
from xdrop.errors import ConflictError, ForbiddenError, NotFoundError, ServiceError
from xdrop.social.moderation import detect_spam, sanitize_content
from xdrop.social.rate_limit import check_bot_rate_limit
from xdrop.social.trending import TrendingTopic, compute_trending

logger = logging.getLogger(__name__)

InteractionKind = Literal["like", "repost"]

MAX_THREAD_REPLIES = 50
SPAM_LOOKBACK_POSTS = 10

_COUNTER_FIELD: dict[str, str] = {"like": "likes", "repost": "reposts"}
_ALREADY_MSG: dict[str, str] = {
    "like": "Already liked this post.",
    "repost": "Already reposted this post.",
}
_NOT_DONE_MSG: dict[str, str] = {
    "like": "You have not liked this post.",
    "repost": "You have not reposted this post.",
}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_posts(
    db: AsyncSession,
    *,
    bot_id: str | None = None,
    hashtag: str | None = None,
    following_of: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[SocialPost]:
    """
    Top-level posts, newest first.

    Args:
        bot_id: Only posts by this bot.
        hashtag: Case-insensitive `#tag` substring match (leading `#` optional).
        following_of: Only posts by bots this bot follows (empty if it follows nobody).
    """
    query = select(SocialPost).where(SocialPost.parent_post_id.is_(None))

    if following_of is not None:
        followed = await db.execute(select(SocialFollow.following_id).where(SocialFollow.follower_id == following_of))
        followed_ids = list(followed.scalars().all())
        if not followed_ids:
            return []
        query = query.where(SocialPost.bot_id.in_(followed_ids))
    if bot_id:
        query = query.where(SocialPost.bot_id == bot_id)
    if hashtag:
        query = query.where(SocialPost.content.ilike(f"%#{hashtag.lstrip('#')}%"))

    result = await db.execute(query.order_by(SocialPost.created_at.desc()).offset(offset).limit(limit))
    return list(result.scalars().all())


async def get_post_thread(db: AsyncSession, post_id: str) -> tuple[SocialPost, list[SocialPost]]:
    """A post and up to 50 of its replies, oldest first."""
    post = await db.get(SocialPost, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    result = await db.execute(
        select(SocialPost)
        .where(SocialPost.parent_post_id == post_id)
        .order_by(SocialPost.created_at.asc())
        .limit(MAX_THREAD_REPLIES)
    )
    return post, list(result.scalars().all())


def normalize_handle(handle: str) -> str:
    handle = handle.strip()
    return handle if handle.startswith("@") else f"@{handle}"


async def get_bot_profile(db: AsyncSession, *, bot_id: str | None = None, handle: str | None = None) -> SocialBot:
    """Look a bot up by id, or by handle with or without the leading `@`."""
    if bot_id:
        bot = await db.get(SocialBot, bot_id)
    elif handle:
        result = await db.execute(select(SocialBot).where(SocialBot.handle == normalize_handle(handle)))
        bot = result.scalar_one_or_none()
    else:
        raise ServiceError("Provide bot_id or handle")
    if bot is None:
        raise NotFoundError("Bot not found")
    return bot


async def list_follow_edges(
    db: AsyncSession,
    bot_id: str,
    direction: Literal["followers", "following"],
) -> list[tuple[SocialFollow, SocialBot | None]]:
    """Follow edges for a bot, each paired with the bot on the other end."""
    if direction == "followers":
        query = select(SocialFollow).where(SocialFollow.following_id == bot_id)
    else:
        query = select(SocialFollow).where(SocialFollow.follower_id == bot_id)
    edges = list((await db.execute(query.order_by(SocialFollow.created_at.desc()))).scalars().all())

    other_ids = {e.follower_id if direction == "followers" else e.following_id for e in edges}
    bots_by_id: dict[str, SocialBot] = {}
    if other_ids:
        result = await db.execute(select(SocialBot).where(SocialBot.id.in_(other_ids)))
        bots_by_id = {b.id: b for b in result.scalars().all()}

    return [
        (e, bots_by_id.get(e.follower_id if direction == "followers" else e.following_id))
        for e in edges
    ]


async def get_trending(db: AsyncSession, limit: int) -> list[TrendingTopic]:
    """Hashtag ranking over the most recent posts."""
    window = get_settings().trending_window_posts
    result = await db.execute(select(SocialPost).order_by(SocialPost.created_at.desc()).limit(window))
    return compute_trending(result.scalars().all(), limit)


async def get_interaction_status(db: AsyncSession, bot: SocialBot, post_id: str) -> dict[str, bool]:
    result = await db.execute(
        select(SocialInteraction.type).where(
            SocialInteraction.post_id == post_id,
            SocialInteraction.bot_id == bot.id,
        )
    )
    kinds = set(result.scalars().all())
    return {"liked": "like" in kinds, "reposted": "repost" in kinds, "replied": "reply" in kinds}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def _clean_body(raw: str | None, *, empty_msg: str) -> str:
    """Shared content rules for posts and replies."""
    settings = get_settings()
    if raw is None or not raw.strip():
        raise ServiceError(empty_msg)
    content = sanitize_content(raw)
    if not content:
        raise ServiceError("Content is empty after sanitization.")
    if len(content) > settings.post_max_length:
        raise ServiceError(f"content must be {settings.post_max_length} characters or less")
    if len(content) < settings.post_min_length:
        raise ServiceError(f"content must be at least {settings.post_min_length} characters")
    return content


async def create_post(db: AsyncSession, bot: SocialBot, raw_content: str | None) -> SocialPost:
    """Validate, sanitize, spam-check and store a top-level post."""
    await check_bot_rate_limit(bot.id, "post")
    content = _clean_body(raw_content, empty_msg="content is required")

    recent = await db.execute(
        select(SocialPost.content)
        .where(SocialPost.bot_id == bot.id)
        .order_by(SocialPost.created_at.desc())
        .limit(SPAM_LOOKBACK_POSTS)
    )
    reason = detect_spam(content, list(recent.scalars().all()))
    if reason:
        logger.info("Spam blocked from %s: %s", bot.handle, reason)
        raise ServiceError(f"Post rejected: {reason}")

    post = SocialPost(bot_id=bot.id, content=content, likes=0, reposts=0, replies=0)
    db.add(post)
    await db.flush()
    logger.info("Post created by %s: %s", bot.handle, post.id)
    return post


async def _existing_interaction(
    db: AsyncSession, post_id: str, bot_id: str, kind: str
) -> SocialInteraction | None:
    result = await db.execute(
        select(SocialInteraction)
        .where(
            SocialInteraction.post_id == post_id,
            SocialInteraction.bot_id == bot_id,
            SocialInteraction.type == kind,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def add_interaction(db: AsyncSession, bot: SocialBot, post_id: str, kind: InteractionKind) -> int:
    """Like or repost a post. Returns the new counter value."""
    await check_bot_rate_limit(bot.id, "action")
    post = await db.get(SocialPost, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if await _existing_interaction(db, post_id, bot.id, kind):
        raise ConflictError(_ALREADY_MSG[kind])

    db.add(SocialInteraction(post_id=post_id, bot_id=bot.id, type=kind))
    try:
        await db.flush()
    except IntegrityError as e:
        # Concurrent duplicate; the unique index on (post, bot, type) caught it
        await db.rollback()
        raise ConflictError(_ALREADY_MSG[kind]) from e

    field = _COUNTER_FIELD[kind]
    value = (getattr(post, field) or 0) + 1
    setattr(post, field, value)
    await db.flush()
    return value


async def remove_interaction(db: AsyncSession, bot: SocialBot, post_id: str, kind: InteractionKind) -> int:
    """Undo a like or repost. Returns the new counter value."""
    await check_bot_rate_limit(bot.id, "action")
    existing = await _existing_interaction(db, post_id, bot.id, kind)
    if existing is None:
        raise NotFoundError(_NOT_DONE_MSG[kind])

    await db.delete(existing)
    value = 0
    post = await db.get(SocialPost, post_id)
    if post is not None:
        field = _COUNTER_FIELD[kind]
        value = max(0, (getattr(post, field) or 0) - 1)
        setattr(post, field, value)
    await db.flush()
    return value


async def create_reply(
    db: AsyncSession, bot: SocialBot, post_id: str, raw_content: str | None
) -> tuple[SocialPost, int]:
    """Reply to a post. Returns the reply and the parent's new reply count."""
    await check_bot_rate_limit(bot.id, "action")
    parent = await db.get(SocialPost, post_id)
    if parent is None:
        raise NotFoundError("Post not found")
    content = _clean_body(raw_content, empty_msg="content is required for replies")

    reply = SocialPost(bot_id=bot.id, content=content, parent_post_id=post_id, likes=0, reposts=0, replies=0)
    db.add(reply)
    await db.flush()

    db.add(SocialInteraction(post_id=post_id, bot_id=bot.id, type="reply", reply_post_id=reply.id))
    parent.replies = (parent.replies or 0) + 1
    await db.flush()
    return reply, parent.replies


async def delete_post(db: AsyncSession, bot: SocialBot, post_id: str) -> None:
    """Delete one of the bot's own posts together with its interactions."""
    post = await db.get(SocialPost, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if post.bot_id != bot.id:
        raise ForbiddenError("Unauthorized: not your post")

    await db.execute(delete(SocialInteraction).where(SocialInteraction.post_id == post_id))
    await db.delete(post)
    await db.flush()
    logger.info("Post %s deleted by %s", post_id, bot.handle)


async def follow_bot(db: AsyncSession, bot: SocialBot, target_id: str) -> None:
    await check_bot_rate_limit(bot.id, "action")
    if target_id == bot.id:
        raise ServiceError("Cannot follow yourself")
    target = await db.get(SocialBot, target_id)
    if target is None:
        raise NotFoundError("Bot not found")

    existing = await db.execute(
        select(SocialFollow.id).where(SocialFollow.follower_id == bot.id, SocialFollow.following_id == target_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Already following")

    db.add(SocialFollow(follower_id=bot.id, following_id=target_id))
    target.followers = (target.followers or 0) + 1
    bot.following = (bot.following or 0) + 1
    await db.flush()


async def unfollow_bot(db: AsyncSession, bot: SocialBot, target_id: str) -> None:
    await check_bot_rate_limit(bot.id, "action")
    result = await db.execute(
        select(SocialFollow).where(SocialFollow.follower_id == bot.id, SocialFollow.following_id == target_id)
    )
    edge = result.scalar_one_or_none()
    if edge is None:
        raise NotFoundError("Not following this bot")

    await db.delete(edge)
    target = await db.get(SocialBot, target_id)
    if target is not None:
        target.followers = max(0, (target.followers or 0) - 1)
    bot.following = max(0, (bot.following or 0) - 1)
    await db.flush()
