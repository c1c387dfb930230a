"""Admin back-office endpoints."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.db.models import (
    Agent,
    AgentManifest,
    CreditTransaction,
    PlatformSetting,
    Profile,
    Report,
    SocialInteraction,
    SocialPost,
    UserRole,
    Wallet,
)
from xdrop.timeutil import utcnow

API = "/api/v1/admin"
USER_ID = "11111111-1111-4111-8111-111111111111"


class TestAccess:
    @pytest.mark.parametrize("path", ["/users", "/bots", "/analytics", "/settings", "/no-such-thing"])
    async def test_requires_token(self, client: AsyncClient, path):
        response = await client.get(f"{API}{path}")
        assert response.status_code == 401

    @pytest.mark.parametrize("path", ["/users", "/reports", "/no-such-thing"])
    async def test_requires_admin_role(self, client: AsyncClient, user_headers, path):
        response = await client.get(f"{API}{path}", headers=user_headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: admin role required"

    async def test_moderator_is_not_admin(self, client: AsyncClient, db: AsyncSession, user_headers):
        db.add(UserRole(user_id=USER_ID, role="moderator"))
        await db.commit()
        response = await client.get(f"{API}/users", headers=user_headers)
        assert response.status_code == 403

    async def test_malformed_body_from_non_admin_is_403(self, client: AsyncClient, user_headers):
        headers = {**user_headers, "content-type": "application/json"}
        response = await client.post(f"{API}/users/{USER_ID}/role", content=b"{not json", headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: admin role required"

    async def test_malformed_body_without_token_is_401(self, client: AsyncClient):
        response = await client.post(
            f"{API}/users/{USER_ID}/role", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 401

    async def test_malformed_body_from_admin_is_422(self, client: AsyncClient, admin_headers):
        headers = {**admin_headers, "content-type": "application/json"}
        response = await client.post(f"{API}/users/{USER_ID}/role", content=b"{not json", headers=headers)
        assert response.status_code == 422

    async def test_unknown_path_is_404_for_admins(self, client: AsyncClient, admin_headers):
        response = await client.get(f"{API}/frobnicate", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown admin endpoint: frobnicate"


class TestUsers:
    async def test_pagination(self, client: AsyncClient, db: AsyncSession, admin_headers):
        now = utcnow()
        for i in range(60):
            db.add(Profile(display_name=f"user-{i}", credits=0, created_at=now - timedelta(minutes=i + 1)))
        await db.commit()

        first = (await client.get(f"{API}/users", headers=admin_headers)).json()
        second = (await client.get(f"{API}/users", params={"page": 1}, headers=admin_headers)).json()
        third = (await client.get(f"{API}/users", params={"page": 2}, headers=admin_headers)).json()

        # 60 seeded plus the admin's own profile
        assert first["total"] == second["total"] == third["total"] == 61
        assert len(first["users"]) == 50
        assert len(second["users"]) == 11
        assert third["users"] == []
        assert second["page"] == 1
        seen = [u["id"] for u in first["users"] + second["users"]]
        assert len(set(seen)) == 61
        assert second["users"][-1]["display_name"] == "user-59"

    async def test_list_with_roles_and_counts(self, client: AsyncClient, db: AsyncSession, admin_headers, bot):
        db.add(Profile(id=USER_ID, display_name="Owner", credits=10))
        db.add(Agent(creator_id=USER_ID, name="Yield Bot"))
        await db.commit()

        response = await client.get(f"{API}/users", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["page"] == 0
        by_id = {u["id"]: u for u in data["users"]}
        assert by_id[USER_ID]["bots_count"] == 1
        assert by_id[USER_ID]["agents_count"] == 1
        assert by_id[USER_ID]["roles"] == []
        assert "admin" in [r for u in data["users"] for r in u["roles"]]

    async def test_set_and_remove_role(self, client: AsyncClient, db: AsyncSession, admin_headers):
        response = await client.post(f"{API}/users/{USER_ID}/role", json={"role": "moderator"}, headers=admin_headers)
        assert response.status_code == 200
        roles = (await db.execute(select(UserRole.role).where(UserRole.user_id == USER_ID))).scalars().all()
        assert roles == ["moderator"]

        await client.post(f"{API}/users/{USER_ID}/role", json={"role": "admin"}, headers=admin_headers)
        roles = (await db.execute(select(UserRole.role).where(UserRole.user_id == USER_ID))).scalars().all()
        assert roles == ["admin"]

        await client.post(f"{API}/users/{USER_ID}/role", json={"role": "remove"}, headers=admin_headers)
        roles = (await db.execute(select(UserRole.role).where(UserRole.user_id == USER_ID))).scalars().all()
        assert roles == []

    async def test_invalid_role(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{API}/users/{USER_ID}/role", json={"role": "owner"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid role: owner"

    async def test_credit_top_up(self, client: AsyncClient, db: AsyncSession, admin_headers):
        db.add(Profile(id=USER_ID, credits=5))
        await db.commit()

        response = await client.post(
            f"{API}/users/{USER_ID}/credits", json={"amount": 20, "description": "goodwill"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "credits": 25}

        tx = (await db.execute(select(CreditTransaction))).scalar_one()
        assert (tx.amount, tx.balance_after, tx.type) == (20, 25, "manual_top_up")

    async def test_credit_top_up_validation(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{API}/users/{USER_ID}/credits", json={"amount": 0}, headers=admin_headers)
        assert response.status_code == 422
        response = await client.post(f"{API}/users/nobody/credits", json={"amount": 5}, headers=admin_headers)
        assert response.status_code == 404


class TestModeration:
    async def test_bot_listing_hides_key_material(self, client: AsyncClient, admin_headers, bot):
        response = await client.get(f"{API}/bots", headers=admin_headers)
        data = response.json()
        assert data["total"] == 1
        listed = data["bots"][0]
        assert listed["handle"] == "@alpha"
        assert "api_key_hash" not in listed
        assert "api_key_prefix" not in listed

    async def test_ban_bot(self, client: AsyncClient, admin_headers, bot):
        row, headers = bot
        response = await client.patch(f"{API}/bots/{row.id}/status", json={"status": "banned"}, headers=admin_headers)
        assert response.status_code == 200

        me = await client.get("/api/v1/social/me", headers=headers)
        assert me.status_code == 403

    async def test_bot_status_errors(self, client: AsyncClient, admin_headers, bot):
        row, _ = bot
        response = await client.patch(f"{API}/bots/{row.id}/status", json={"status": "zombie"}, headers=admin_headers)
        assert response.status_code == 400
        response = await client.patch(f"{API}/bots/missing/status", json={"status": "active"}, headers=admin_headers)
        assert response.status_code == 404

    async def test_posts_and_delete(self, client: AsyncClient, db: AsyncSession, admin_headers, bot):
        row, _ = bot
        post = SocialPost(bot_id=row.id, content="hello world", likes=1)
        db.add(post)
        await db.flush()
        db.add(SocialPost(bot_id=row.id, content="a reply", parent_post_id=post.id))
        db.add(SocialInteraction(post_id=post.id, bot_id=row.id, type="like"))
        await db.commit()

        listing = (await client.get(f"{API}/posts", headers=admin_headers)).json()
        assert listing["total"] == 1
        assert listing["posts"][0]["bot"]["handle"] == "@alpha"

        response = await client.delete(f"{API}/posts/{post.id}", headers=admin_headers)
        assert response.status_code == 200
        assert (await db.execute(select(SocialInteraction))).scalars().all() == []

        again = await client.delete(f"{API}/posts/{post.id}", headers=admin_headers)
        assert again.status_code == 404


class TestAgents:
    async def test_list_with_profiles_and_manifests(self, client: AsyncClient, db: AsyncSession, admin_headers):
        db.add(Profile(id=USER_ID, display_name="Maker"))
        agent = Agent(creator_id=USER_ID, name="Scout", status="draft")
        db.add(agent)
        await db.flush()
        db.add(AgentManifest(agent_id=agent.id, triggers=["cron"], tool_permissions=["web"]))
        await db.commit()

        data = (await client.get(f"{API}/agents", headers=admin_headers)).json()
        assert data["total"] == 1
        assert data["agents"][0]["profile"]["display_name"] == "Maker"
        assert data["manifests"] == [{"agent_id": agent.id, "triggers": ["cron"], "tool_permissions": ["web"]}]

    async def test_update_status(self, client: AsyncClient, db: AsyncSession, admin_headers):
        agent = Agent(creator_id=USER_ID, name="Scout")
        db.add(agent)
        await db.commit()

        ok = await client.patch(f"{API}/agents/{agent.id}/status", json={"status": "published"}, headers=admin_headers)
        assert ok.status_code == 200
        db.expire_all()
        assert (await db.get(Agent, agent.id)).status == "published"

        bad = await client.patch(f"{API}/agents/{agent.id}/status", json={"status": "live"}, headers=admin_headers)
        assert bad.status_code == 400


class TestLedgers:
    async def test_transactions_filter_and_sort(self, client: AsyncClient, db: AsyncSession, admin_headers):
        db.add_all(
            [
                CreditTransaction(user_id=USER_ID, amount=50, balance_after=50, type="manual_top_up"),
                CreditTransaction(user_id=USER_ID, amount=-10, balance_after=40, type="voice", description="tts"),
            ]
        )
        await db.commit()

        data = (await client.get(f"{API}/transactions?type=voice", headers=admin_headers)).json()
        assert data["total"] == 1
        assert data["transactions"][0]["amount"] == -10

        data = (await client.get(f"{API}/transactions?sort=amount&dir=asc", headers=admin_headers)).json()
        assert [t["amount"] for t in data["transactions"]] == [-10, 50]

        data = (await client.get(f"{API}/transactions?search=tts", headers=admin_headers)).json()
        assert data["total"] == 1

        response = await client.get(f"{API}/transactions?sort=password", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid sort field: password"

    async def test_wallet_balance_filter(self, client: AsyncClient, db: AsyncSession, admin_headers):
        db.add_all(
            [
                Wallet(user_id=USER_ID, address="So1Funded", balance=12.5),
                Wallet(user_id=USER_ID, address="So1Empty", balance=0),
            ]
        )
        await db.commit()

        funded = (await client.get(f"{API}/wallets?balance=funded", headers=admin_headers)).json()
        assert [w["address"] for w in funded["wallets"]] == ["So1Funded"]
        empty = (await client.get(f"{API}/wallets?balance=empty", headers=admin_headers)).json()
        assert [w["address"] for w in empty["wallets"]] == ["So1Empty"]
        search = (await client.get(f"{API}/wallets?search=fund", headers=admin_headers)).json()
        assert search["total"] == 1


class TestReports:
    async def test_update_and_delete(self, client: AsyncClient, db: AsyncSession, admin_headers):
        report = Report(user_id=USER_ID, category="bug", details="feed is empty")
        db.add(report)
        await db.commit()

        listing = (await client.get(f"{API}/reports?status=pending", headers=admin_headers)).json()
        assert listing["total"] == 1

        response = await client.patch(
            f"{API}/reports/{report.id}",
            json={"status": "resolved", "admin_notes": "fixed in 1.2"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["report"]["status"] == "resolved"
        assert body["report"]["admin_notes"] == "fixed in 1.2"

        bad = await client.patch(f"{API}/reports/{report.id}", json={"status": "closed"}, headers=admin_headers)
        assert bad.status_code == 400

        assert (await client.delete(f"{API}/reports/{report.id}", headers=admin_headers)).status_code == 200
        assert (await client.delete(f"{API}/reports/{report.id}", headers=admin_headers)).status_code == 404


class TestSettings:
    async def test_upsert(self, client: AsyncClient, db: AsyncSession, admin_headers):
        db.add(PlatformSetting(key="maintenance_mode", value=False, description="Read-only mode"))
        await db.commit()

        response = await client.put(
            f"{API}/settings",
            json={"settings": {"maintenance_mode": True, "signup_bonus": 25}},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "updated": 2}

        data = (await client.get(f"{API}/settings", headers=admin_headers)).json()
        by_key = {s["key"]: s for s in data["settings"]}
        assert by_key["maintenance_mode"]["value"] is True
        assert by_key["maintenance_mode"]["description"] == "Read-only mode"
        assert by_key["signup_bonus"]["value"] == 25
