"""Social API: likes, reposts, follows, profiles, trending and per-bot limits."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.db.models import SocialBot, SocialInteraction, SocialPost
from xdrop.social import service as social_service

API = "/api/v1/social"


async def _post(client: AsyncClient, headers: dict, content: str) -> str:
    response = await client.post(f"{API}/posts", json={"content": content}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["post"]["id"]


class FakePipeline:
    def __init__(self, store: dict[str, int]) -> None:
        self.store = store
        self.ops: list[str] = []

    def incr(self, key: str) -> None:
        self.ops.append(key)

    def expire(self, key: str, seconds: int) -> None:
        pass

    async def execute(self) -> list:
        key = self.ops[0]
        self.store[key] = self.store.get(key, 0) + 1
        return [self.store[key], True]


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, int] = {}

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self.store)


class TestLikesAndReposts:
    async def test_like_unlike(self, client: AsyncClient, bot, other_bot):
        _, headers = bot
        _, other_headers = other_bot
        post_id = await _post(client, headers, "like this please")

        liked = await client.post(f"{API}/posts/{post_id}/like", headers=other_headers)
        assert liked.json() == {"success": True, "liked": True, "likes": 1}

        again = await client.post(f"{API}/posts/{post_id}/like", headers=other_headers)
        assert again.status_code == 409

        status = (await client.get(f"{API}/posts/{post_id}/interactions", headers=other_headers)).json()
        assert status == {"post_id": post_id, "liked": True, "reposted": False, "replied": False}

        unliked = await client.delete(f"{API}/posts/{post_id}/like", headers=other_headers)
        assert unliked.json() == {"success": True, "liked": False, "likes": 0}

        missing = await client.delete(f"{API}/posts/{post_id}/like", headers=other_headers)
        assert missing.status_code == 404

    async def test_repost(self, client: AsyncClient, bot, other_bot):
        _, headers = bot
        _, other_headers = other_bot
        post_id = await _post(client, headers, "repost this please")

        response = await client.post(f"{API}/posts/{post_id}/repost", headers=other_headers)
        assert response.json()["reposts"] == 1
        response = await client.delete(f"{API}/posts/{post_id}/repost", headers=other_headers)
        assert response.json()["reposts"] == 0

    async def test_like_missing_post(self, client: AsyncClient, bot):
        _, headers = bot
        response = await client.post(f"{API}/posts/missing/like", headers=headers)
        assert response.status_code == 404

    async def test_counter_never_negative(self, client: AsyncClient, bot, db: AsyncSession):
        alpha, headers = bot
        post = SocialPost(bot_id=alpha.id, content="drifted counter", likes=0, reposts=0, replies=0)
        db.add(post)
        await db.flush()
        db.add(SocialInteraction(post_id=post.id, bot_id=alpha.id, type="like"))
        await db.commit()

        response = await client.delete(f"{API}/posts/{post.id}/like", headers=headers)
        assert response.status_code == 200
        assert response.json()["likes"] == 0

    async def test_reply_marks_interaction(self, client: AsyncClient, bot, other_bot):
        _, headers = bot
        _, other_headers = other_bot
        post_id = await _post(client, headers, "reply to me")
        response = await client.post(f"{API}/posts/{post_id}/replies", json={"content": "sure"}, headers=other_headers)
        assert response.status_code == 201
        assert response.json()["replies"] == 1
        assert response.json()["reply_post"]["content"] == "sure"

        status = (await client.get(f"{API}/posts/{post_id}/interactions", headers=other_headers)).json()
        assert status["replied"] is True

    async def test_reply_requires_content(self, client: AsyncClient, bot):
        _, headers = bot
        post_id = await _post(client, headers, "empty replies?")
        response = await client.post(f"{API}/posts/{post_id}/replies", json={}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "content is required for replies"


class TestInteractionUniqueness:
    async def _seed_post(self, db: AsyncSession, bot_id: str) -> SocialPost:
        post = SocialPost(bot_id=bot_id, content="only once")
        db.add(post)
        await db.commit()
        return post

    @pytest.mark.parametrize("kind", ["like", "repost"])
    async def test_duplicate_row_rejected_by_database(self, db: AsyncSession, bot, kind):
        alpha, _ = bot
        post = await self._seed_post(db, alpha.id)
        db.add(SocialInteraction(post_id=post.id, bot_id=alpha.id, type=kind))
        await db.commit()

        db.add(SocialInteraction(post_id=post.id, bot_id=alpha.id, type=kind))
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    async def test_replies_repeat(self, db: AsyncSession, bot):
        alpha, _ = bot
        post = await self._seed_post(db, alpha.id)
        db.add(SocialInteraction(post_id=post.id, bot_id=alpha.id, type="reply"))
        db.add(SocialInteraction(post_id=post.id, bot_id=alpha.id, type="reply"))
        db.add(SocialInteraction(post_id=post.id, bot_id=alpha.id, type="like"))
        await db.commit()

        count = await db.execute(select(func.count()).select_from(SocialInteraction))
        assert count.scalar_one() == 3

    async def test_concurrent_duplicate_like_is_a_conflict(
        self, client: AsyncClient, db: AsyncSession, bot, other_bot, monkeypatch
    ):
        alpha, _ = bot
        beta, beta_headers = other_bot
        post = await self._seed_post(db, alpha.id)
        db.add(SocialInteraction(post_id=post.id, bot_id=beta.id, type="like"))
        await db.commit()

        async def not_seen(*args, **kwargs):
            return None

        monkeypatch.setattr(social_service, "_existing_interaction", not_seen)
        response = await client.post(f"{API}/posts/{post.id}/like", headers=beta_headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "Already liked this post."

        db.expire_all()
        assert (await db.get(SocialPost, post.id)).likes == 0


class TestFollows:
    async def test_follow_and_unfollow(self, client: AsyncClient, bot, other_bot, db: AsyncSession):
        alpha, headers = bot
        beta, _ = other_bot

        response = await client.post(f"{API}/bots/{beta.id}/follow", headers=headers)
        assert response.json() == {"success": True, "following": True}
        assert (await client.post(f"{API}/bots/{beta.id}/follow", headers=headers)).status_code == 409

        followers = (await client.get(f"{API}/bots/{beta.id}/followers")).json()["followers"]
        assert [f["bot"]["handle"] for f in followers] == ["@alpha"]
        following = (await client.get(f"{API}/bots/{alpha.id}/following")).json()["following"]
        assert [f["bot"]["handle"] for f in following] == ["@beta"]

        db.expire_all()
        assert (await db.get(SocialBot, beta.id)).followers == 1
        assert (await db.get(SocialBot, alpha.id)).following == 1

        response = await client.delete(f"{API}/bots/{beta.id}/follow", headers=headers)
        assert response.json() == {"success": True, "following": False}
        assert (await client.delete(f"{API}/bots/{beta.id}/follow", headers=headers)).status_code == 404

        db.expire_all()
        assert (await db.get(SocialBot, beta.id)).followers == 0

    async def test_cannot_follow_self(self, client: AsyncClient, bot):
        alpha, headers = bot
        response = await client.post(f"{API}/bots/{alpha.id}/follow", headers=headers)
        assert response.status_code == 400

    async def test_follow_unknown_bot(self, client: AsyncClient, bot):
        _, headers = bot
        assert (await client.post(f"{API}/bots/ghost/follow", headers=headers)).status_code == 404


class TestProfilesAndTrending:
    async def test_profile_by_handle(self, client: AsyncClient, bot):
        alpha, _ = bot
        for handle in ("alpha", "@alpha"):
            data = (await client.get(f"{API}/bots", params={"handle": handle})).json()
            assert data["bot"]["id"] == alpha.id
        assert "api_key_hash" not in data["bot"]

    async def test_profile_needs_selector(self, client: AsyncClient):
        response = await client.get(f"{API}/bots")
        assert response.status_code == 400

    async def test_profile_by_id_not_found(self, client: AsyncClient):
        assert (await client.get(f"{API}/bots/ghost")).status_code == 404

    async def test_trending(self, client: AsyncClient, bot, other_bot):
        _, headers = bot
        _, other_headers = other_bot
        hot = await _post(client, headers, "big news #launch")
        await _post(client, headers, "quiet note #misc")
        await client.post(f"{API}/posts/{hot}/repost", headers=other_headers)

        trending = (await client.get(f"{API}/trending")).json()["trending"]
        assert trending[0] == {"topic": "#launch", "posts": 1, "score": 2.0}
        assert trending[1]["topic"] == "#misc"


class TestPerBotRateLimit:
    async def test_sixth_post_in_a_minute_is_rejected(self, client: AsyncClient, bot, monkeypatch):
        _, headers = bot
        fake = FakeRedis()
        monkeypatch.setattr("xdrop.social.rate_limit.get_redis", lambda: fake)

        for i in range(5):
            await _post(client, headers, f"post number {i} about topic {i * 7}")
        response = await client.post(f"{API}/posts", json={"content": "one too many"}, headers=headers)
        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit exceeded. Max 5 posts per minute."

    async def test_action_limit(self, client: AsyncClient, bot, other_bot, monkeypatch, settings_env):
        _, headers = bot
        beta, _ = other_bot
        settings_env(social_action_rate_limit=1)
        fake = FakeRedis()
        monkeypatch.setattr("xdrop.social.rate_limit.get_redis", lambda: fake)

        assert (await client.post(f"{API}/bots/{beta.id}/follow", headers=headers)).status_code == 200
        response = await client.delete(f"{API}/bots/{beta.id}/follow", headers=headers)
        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit exceeded. Max 1 actions per minute."
