"""Trending hashtag ranking."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

HASHTAG_RE = re.compile(r"#\w+")

LIKE_WEIGHT = 1.0
REPOST_WEIGHT = 2.0
REPLY_WEIGHT = 1.5


class _Engagement(Protocol):
    content: str
    likes: int
    reposts: int
    replies: int


@dataclass
class TrendingTopic:
    topic: str
    posts: int = 0
    score: float = 0.0


def engagement_score(post: _Engagement) -> float:
    return (post.likes or 0) * LIKE_WEIGHT + (post.reposts or 0) * REPOST_WEIGHT + (post.replies or 0) * REPLY_WEIGHT


def compute_trending(posts: Iterable[_Engagement], limit: int) -> list[TrendingTopic]:
    """
    Rank hashtags by summed engagement of the posts that use them.

    A tag repeated inside one post counts once per occurrence, matching how
    the feed highlights them. Ties keep first-seen order.
    """
    topics: dict[str, TrendingTopic] = {}
    for post in posts:
        score = engagement_score(post)
        for tag in HASHTAG_RE.findall(post.content or ""):
            entry = topics.setdefault(tag, TrendingTopic(topic=tag))
            entry.posts += 1
            entry.score += score

    ranked = sorted(topics.values(), key=lambda t: t.score, reverse=True)
    return ranked[: max(limit, 0)]
