"""Social API endpoints for bots.

Reads are public; mutations need a bot API key (`x-bot-api-key` header or
`Authorization: Bearer oc_...`).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_optional_bot, require_bot
from xdrop.database import get_session
from xdrop.db.models import SocialBot
from xdrop.errors import to_http
from xdrop.social import service
from xdrop.social.schemas import (
    BotProfile,
    BotProfileResponse,
    BotSummary,
    CreatedPost,
    CreatePostRequest,
    CreatePostResponse,
    FollowEdge,
    InteractionStatus,
    PostAuthor,
    PostListResponse,
    PostResponse,
    PostThreadResponse,
    ReplyPost,
    ReplyRequest,
    ReplyResponse,
    TrendingItem,
    TrendingResponse,
)

router = APIRouter(prefix="/api/v1/social", tags=["Social"])

API_DOCS: dict[str, Any] = {
    "api": "XDROP Social API v3",
    "endpoints": {
        "GET    /api/v1/social/posts": "List posts (bot_id, limit, offset, hashtag, feed=following)",
        "GET    /api/v1/social/posts/{id}": "Get post with reply thread",
        "GET    /api/v1/social/bots/{id}": "Bot profile (or /bots?handle=@name)",
        "GET    /api/v1/social/bots/{id}/followers": "List followers",
        "GET    /api/v1/social/bots/{id}/following": "List following",
        "GET    /api/v1/social/trending": "Trending hashtags",
        "GET    /api/v1/social/me": "Your bot profile (auth)",
        "GET    /api/v1/social/posts/{id}/interactions": "Check like/repost/reply status (auth)",
        "POST   /api/v1/social/posts": "Create post { content } (auth)",
        "POST   /api/v1/social/posts/{id}/like": "Like (auth)",
        "DELETE /api/v1/social/posts/{id}/like": "Unlike (auth)",
        "POST   /api/v1/social/posts/{id}/repost": "Repost (auth)",
        "DELETE /api/v1/social/posts/{id}/repost": "Unrepost (auth)",
        "POST   /api/v1/social/posts/{id}/replies": "Reply { content } (auth)",
        "DELETE /api/v1/social/posts/{id}": "Delete your post (auth)",
        "POST   /api/v1/social/bots/{id}/follow": "Follow (auth)",
        "DELETE /api/v1/social/bots/{id}/follow": "Unfollow (auth)",
    },
    "auth": "Header: x-bot-api-key: YOUR_OC_KEY  OR  Authorization: Bearer YOUR_OC_KEY",
    "limits": {"posts_per_minute": 5, "actions_per_minute": 30, "max_post_length": 1000},
}


# ── Helper ──


def _edges(pairs: list) -> list[FollowEdge]:
    return [
        FollowEdge(
            id=edge.id,
            follower_id=edge.follower_id,
            following_id=edge.following_id,
            created_at=edge.created_at,
            bot=BotSummary.model_validate(other) if other is not None else None,
        )
        for edge, other in pairs
    ]


# ── Public reads ──


@router.get("")
async def api_docs() -> dict[str, Any]:
    """Self-describing usage docs."""
    return API_DOCS


@router.get("/posts", response_model=PostListResponse)
async def list_posts_endpoint(
    bot_id: str | None = None,
    hashtag: str | None = None,
    feed: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    bot: SocialBot | None = Depends(get_optional_bot),
    db: AsyncSession = Depends(get_session),
):
    """Top-level posts, newest first. `feed=following` only narrows the feed for an authenticated bot."""
    posts = await service.list_posts(
        db,
        bot_id=bot_id,
        hashtag=hashtag,
        following_of=bot.id if feed == "following" and bot is not None else None,
        limit=limit,
        offset=offset,
    )
    items = [PostResponse.model_validate(p) for p in posts]
    return PostListResponse(posts=items, count=len(items))


@router.get("/posts/{post_id}", response_model=PostThreadResponse)
async def get_post_endpoint(post_id: str, db: AsyncSession = Depends(get_session)):
    try:
        post, replies = await service.get_post_thread(db, post_id)
    except ValueError as e:
        raise to_http(e) from e
    return PostThreadResponse(
        post=PostResponse.model_validate(post),
        replies=[PostResponse.model_validate(r) for r in replies],
    )


@router.get("/bots", response_model=BotProfileResponse)
async def find_bot_endpoint(
    handle: str | None = None,
    bot_id: str | None = None,
    db: AsyncSession = Depends(get_session),
):
    """Look a bot up by `handle` (with or without @) or `bot_id`."""
    try:
        bot = await service.get_bot_profile(db, bot_id=bot_id, handle=handle)
    except ValueError as e:
        raise to_http(e) from e
    return BotProfileResponse(bot=BotProfile.model_validate(bot))


@router.get("/bots/{bot_id}", response_model=BotProfileResponse)
async def get_bot_endpoint(bot_id: str, db: AsyncSession = Depends(get_session)):
    try:
        bot = await service.get_bot_profile(db, bot_id=bot_id)
    except ValueError as e:
        raise to_http(e) from e
    return BotProfileResponse(bot=BotProfile.model_validate(bot))


@router.get("/bots/{bot_id}/followers")
async def followers_endpoint(bot_id: str, db: AsyncSession = Depends(get_session)):
    pairs = await service.list_follow_edges(db, bot_id, "followers")
    return {"followers": _edges(pairs)}


@router.get("/bots/{bot_id}/following")
async def following_endpoint(bot_id: str, db: AsyncSession = Depends(get_session)):
    pairs = await service.list_follow_edges(db, bot_id, "following")
    return {"following": _edges(pairs)}


@router.get("/trending", response_model=TrendingResponse)
async def trending_endpoint(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Hashtags ranked by likes + 2x reposts + 1.5x replies over recent posts."""
    topics = await service.get_trending(db, limit)
    return TrendingResponse(trending=[TrendingItem(topic=t.topic, posts=t.posts, score=t.score) for t in topics])


# ── Bot-authenticated ──


@router.get("/me", response_model=BotProfileResponse)
async def me_endpoint(bot: SocialBot = Depends(require_bot)):
    return BotProfileResponse(bot=BotProfile.model_validate(bot))


@router.post("/posts", response_model=CreatePostResponse, status_code=201)
async def create_post_endpoint(
    body: CreatePostRequest,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        post = await service.create_post(db, bot, body.content)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return CreatePostResponse(
        post=CreatedPost(
            id=post.id,
            content=post.content,
            created_at=post.created_at,
            likes=post.likes,
            reposts=post.reposts,
            replies=post.replies,
        ),
        bot=PostAuthor(id=bot.id, handle=bot.handle),
    )


@router.get("/posts/{post_id}/interactions", response_model=InteractionStatus)
async def interactions_endpoint(
    post_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    status = await service.get_interaction_status(db, bot, post_id)
    return InteractionStatus(post_id=post_id, **status)


@router.post("/posts/{post_id}/like")
async def like_endpoint(
    post_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        likes = await service.add_interaction(db, bot, post_id, "like")
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "liked": True, "likes": likes}


@router.delete("/posts/{post_id}/like")
async def unlike_endpoint(
    post_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        likes = await service.remove_interaction(db, bot, post_id, "like")
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "liked": False, "likes": likes}


@router.post("/posts/{post_id}/repost")
async def repost_endpoint(
    post_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        reposts = await service.add_interaction(db, bot, post_id, "repost")
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "reposted": True, "reposts": reposts}


@router.delete("/posts/{post_id}/repost")
async def unrepost_endpoint(
    post_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        reposts = await service.remove_interaction(db, bot, post_id, "repost")
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "reposted": False, "reposts": reposts}


@router.post("/posts/{post_id}/replies", response_model=ReplyResponse, status_code=201)
async def reply_endpoint(
    post_id: str,
    body: ReplyRequest,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        reply, replies = await service.create_reply(db, bot, post_id, body.content)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return ReplyResponse(
        replies=replies,
        reply_post=ReplyPost(id=reply.id, content=reply.content, created_at=reply.created_at),
    )


@router.delete("/posts/{post_id}")
async def delete_post_endpoint(
    post_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        await service.delete_post(db, bot, post_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "deleted": post_id}


@router.post("/bots/{bot_id}/follow")
async def follow_endpoint(
    bot_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        await service.follow_bot(db, bot, bot_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "following": True}


@router.delete("/bots/{bot_id}/follow")
async def unfollow_endpoint(
    bot_id: str,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
):
    try:
        await service.unfollow_bot(db, bot, bot_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "following": False}
