"""Bot batch registration, AI verification and key rotation."""

import json
import re

import httpx
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.bots.challenges import CHALLENGES
from xdrop.db.models import SocialBot

API = "/api/v1/bots"
MULTIPLICATION = next(c for c in CHALLENGES if c.name == "multiplication")


def _sum_bot(request: httpx.Request) -> httpx.Response:
    """A bot endpoint that answers the arithmetic challenge correctly."""
    prompt = json.loads(request.content)["messages"][0]["content"]
    a, b = (int(n) for n in re.findall(r"\d+", prompt)[:2])
    return httpx.Response(200, json={"choices": [{"message": {"content": str(a + b)}}]})


class TestBatchRegister:
    async def test_requires_user(self, client: AsyncClient):
        response = await client.post(f"{API}/batch-register", json={"bots": [{"name": "A", "handle": "a"}]})
        assert response.status_code == 401

    async def test_creates_bots_with_keys(self, client: AsyncClient, user_headers, db: AsyncSession):
        body = {"bots": [{"name": "Alpha", "handle": "alpha"}, {"name": "Beta", "handle": "@beta"}], "verify": False}
        response = await client.post(f"{API}/batch-register", json=body, headers=user_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["summary"]["created"] == 2
        assert [b["handle"] for b in data["bots"]] == ["@alpha", "@beta"]
        assert all(b["api_key"].startswith("oc_") for b in data["bots"])
        assert all(b["status"] == "active" for b in data["bots"])

        me = await client.get("/api/v1/social/me", headers={"x-bot-api-key": data["bots"][0]["api_key"]})
        assert me.json()["bot"]["handle"] == "@alpha"

        stored = (await db.execute(select(SocialBot))).scalars().all()
        assert all(b.api_key_hash and b.api_key_hash.startswith("$argon2id$") for b in stored)

    async def test_validation_and_duplicates(self, client: AsyncClient, user_headers, bot):
        body = {
            "bots": [
                {"handle": "@noname"},
                {"name": "No Handle"},
                {"name": "Taken", "handle": "@alpha"},
                {"name": "Fresh", "handle": "@fresh"},
                {"name": "Fresh Again", "handle": "fresh"},
            ],
            "verify": False,
            "auto_activate": False,
        }
        response = await client.post(f"{API}/batch-register", json=body, headers=user_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["summary"]["created"] == 1
        assert data["summary"]["duplicates_skipped"] == 2
        assert data["bots"][0]["status"] == "pending"
        errors = {e["index"]: e["error"] for e in data["validation_errors"]}
        assert errors[0] == "name is required"
        assert errors[1].startswith("handle is required")
        assert errors[2] == "Handle @alpha already exists"

    async def test_all_duplicates_is_conflict(self, client: AsyncClient, user_headers, bot):
        body = {"bots": [{"name": "Again", "handle": "@alpha"}]}
        response = await client.post(f"{API}/batch-register", json=body, headers=user_headers)
        assert response.status_code == 409
        assert response.json()["validation_errors"][0]["index"] == 0

    async def test_no_valid_items(self, client: AsyncClient, user_headers):
        response = await client.post(f"{API}/batch-register", json={"bots": [{"bio": "?"}]}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No valid bots to register"

    async def test_empty_and_oversized(self, client: AsyncClient, user_headers):
        assert (await client.post(f"{API}/batch-register", json={"bots": []}, headers=user_headers)).status_code == 400
        many = {"bots": [{"name": f"B{i}", "handle": f"b{i}"} for i in range(101)]}
        response = await client.post(f"{API}/batch-register", json=many, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Maximum 100 bots per batch"

    async def test_quick_verify(self, client: AsyncClient, user_headers, upstream):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "good.bot":
                return _sum_bot(request)
            return httpx.Response(200, json={"content": "no idea"})

        upstream.handler = handler
        body = {
            "bots": [
                {"name": "Good", "handle": "good", "api_endpoint": "https://good.bot/chat"},
                {"name": "Bad", "handle": "bad", "api_endpoint": "https://bad.bot/chat"},
                {"name": "Plain", "handle": "plain"},
            ]
        }
        response = await client.post(f"{API}/batch-register", json=body, headers=user_headers)
        data = response.json()
        by_handle = {b["handle"]: b for b in data["bots"]}
        assert by_handle["@good"]["verified"] is True
        assert by_handle["@good"]["status"] == "verified"
        assert by_handle["@bad"]["verified"] is False
        assert by_handle["@bad"]["verify_error"].startswith("Expected ")
        assert by_handle["@plain"]["verify_skipped"] is True
        assert data["summary"] == {
            "total_requested": 3,
            "created": 3,
            "verified": 1,
            "failed": 1,
            "skipped": 1,
            "duplicates_skipped": 0,
        }


class TestVerify:
    async def test_passes_challenge(self, client: AsyncClient, user_headers, bot_factory, upstream, monkeypatch):
        monkeypatch.setattr("xdrop.bots.service.pick_challenge", lambda: MULTIPLICATION)
        upstream.handler = lambda request: httpx.Response(200, json={"response": "19481"})
        alpha, _ = await bot_factory("@alpha", status="pending")

        response = await client.post(
            f"{API}/{alpha.id}/verify", json={"api_endpoint": "https://alpha.bot/chat"}, headers=user_headers
        )
        assert response.status_code == 200
        assert response.json()["verified"] is True
        assert response.json()["status"] == "verified"

    async def test_wrong_answer_keeps_endpoint(
        self, client: AsyncClient, user_headers, bot_factory, upstream, monkeypatch, db: AsyncSession
    ):
        monkeypatch.setattr("xdrop.bots.service.pick_challenge", lambda: MULTIPLICATION)
        upstream.handler = lambda request: httpx.Response(200, json={"content": "42"})
        alpha, _ = await bot_factory("@alpha", status="pending")

        response = await client.post(
            f"{API}/{alpha.id}/verify", json={"api_endpoint": "https://alpha.bot/chat"}, headers=user_headers
        )
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["verified"] is False
        assert detail["challenge_sent"] == MULTIPLICATION.prompt
        assert detail["response_received"] == "42"

        db.expire_all()
        stored = await db.get(SocialBot, alpha.id)
        assert stored.api_endpoint == "https://alpha.bot/chat"
        assert stored.status == "pending"

    async def test_timeout(self, client: AsyncClient, user_headers, bot_factory, upstream):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        upstream.handler = handler
        alpha, _ = await bot_factory("@alpha", api_endpoint="https://slow.bot/chat")
        response = await client.post(f"{API}/{alpha.id}/verify", headers=user_headers)
        assert response.status_code == 408

    async def test_unreachable_endpoint(self, client: AsyncClient, user_headers, bot_factory, upstream):
        upstream.handler = lambda request: httpx.Response(503, text="down")
        alpha, _ = await bot_factory("@alpha", api_endpoint="https://down.bot/chat")
        response = await client.post(f"{API}/{alpha.id}/verify", headers=user_headers)
        assert response.status_code == 400
        assert "hint" in response.json()["detail"]

    async def test_no_endpoint(self, client: AsyncClient, user_headers, bot):
        alpha, _ = bot
        response = await client.post(f"{API}/{alpha.id}/verify", headers=user_headers)
        assert response.status_code == 400
        assert response.json()["detail"].startswith("No AI endpoint provided")

    async def test_not_owner(self, client: AsyncClient, other_user_headers, bot):
        alpha, _ = bot
        response = await client.post(f"{API}/{alpha.id}/verify", headers=other_user_headers)
        assert response.status_code == 403


class TestRotateKey:
    async def test_old_key_stops_working(self, client: AsyncClient, user_headers, bot):
        alpha, old_headers = bot
        response = await client.post(f"{API}/{alpha.id}/rotate-key", headers=user_headers)
        assert response.status_code == 200
        new_key = response.json()["api_key"]
        assert new_key != old_headers["x-bot-api-key"]

        assert (await client.get("/api/v1/social/me", headers=old_headers)).status_code == 401
        assert (await client.get("/api/v1/social/me", headers={"x-bot-api-key": new_key})).status_code == 200

    async def test_unknown_bot(self, client: AsyncClient, user_headers):
        assert (await client.post(f"{API}/ghost/rotate-key", headers=user_headers)).status_code == 404
