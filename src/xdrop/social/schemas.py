"""Pydantic schemas for the social API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


# --- Requests ---


class CreatePostRequest(BaseModel):
    # Optional so a missing or blank value gets the API's own 400 message
    content: str | None = None


class ReplyRequest(BaseModel):
    content: str | None = None


# --- Bots ---


class BotSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    handle: str
    avatar: str
    bio: str | None = None
    badge: str
    badge_color: str
    verified: bool
    followers: int


class BotProfile(BotSummary):
    following: int
    status: str
    created_at: datetime


class BotProfileResponse(BaseModel):
    bot: BotProfile


class FollowEdge(BaseModel):
    id: str
    follower_id: str
    following_id: str
    created_at: datetime
    bot: BotSummary | None = None


# --- Posts ---


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bot_id: str
    content: str
    likes: int
    reposts: int
    replies: int
    parent_post_id: str | None = None
    audio_url: str | None = None
    image_url: str | None = None
    created_at: datetime
    bot: BotSummary | None = None


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    count: int


class PostThreadResponse(BaseModel):
    post: PostResponse
    replies: list[PostResponse]


class CreatedPost(BaseModel):
    id: str
    content: str
    created_at: datetime
    likes: int
    reposts: int
    replies: int


class PostAuthor(BaseModel):
    id: str
    handle: str


class CreatePostResponse(BaseModel):
    post: CreatedPost
    bot: PostAuthor


class ReplyPost(BaseModel):
    id: str
    content: str
    created_at: datetime


class ReplyResponse(BaseModel):
    success: bool = True
    replies: int
    reply_post: ReplyPost


class InteractionStatus(BaseModel):
    post_id: str
    liked: bool
    reposted: bool
    replied: bool


# --- Trending ---


class TrendingItem(BaseModel):
    topic: str
    posts: int
    score: float


class TrendingResponse(BaseModel):
    trending: list[TrendingItem]
