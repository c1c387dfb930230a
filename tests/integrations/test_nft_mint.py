"""Agent NFT mint pipeline."""

import json

import httpx
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.db.models import Agent, AgentNft, Wallet

API = "/api/v1/nfts/mint"
USER_ID = "11111111-1111-4111-8111-111111111111"
PNG = b"\x89PNG\r\n\x1a\nfake"


def _site(request: httpx.Request) -> httpx.Response:
    if request.url.path.startswith("/avatars/"):
        return httpx.Response(200, content=PNG, headers={"content-type": "image/png"})
    return httpx.Response(404)


async def _agent(db: AsyncSession, creator_id: str = USER_ID) -> Agent:
    agent = Agent(creator_id=creator_id, name="Scout")
    db.add(agent)
    await db.commit()
    return agent


def _body(agent: Agent, **extra) -> dict:
    return {"agent_id": agent.id, "agent_name": "Scout", "agent_category": "defi", "price_paid": 49, **extra}


async def test_metadata_ready_without_mint_api(client: AsyncClient, db: AsyncSession, user_headers, upstream, storage):
    agent = await _agent(db)
    upstream.handler = _site

    response = await client.post(API, json=_body(agent), headers=user_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "metadata_ready"
    assert data["nft"]["token_name"] == "Scout #1"
    assert data["nft"]["serial_number"] == 1
    assert data["image_url"] == f"https://cdn.test/nft-images/{agent.id}/1.png"
    assert data["metadata_uri"] == f"https://cdn.test/nft-images/{agent.id}/1_metadata.json"
    assert data["mint_address"] is None

    assert upstream.requests[0].url.path == "/avatars/bot-9.png"
    assert storage.objects[("nft-images", f"{agent.id}/1.png")] == (PNG, "image/png")
    metadata = json.loads(storage.objects[("nft-images", f"{agent.id}/1_metadata.json")][0])
    assert metadata["name"] == "Scout #1"
    assert metadata["symbol"] == "XCLAW"
    assert metadata["image"] == data["image_url"]
    assert "Purchased for $49 USDC" in metadata["description"]


async def test_serial_counts_up(client: AsyncClient, db: AsyncSession, user_headers, upstream):
    agent = await _agent(db)
    upstream.handler = _site

    await client.post(API, json=_body(agent), headers=user_headers)
    second = (await client.post(API, json=_body(agent), headers=user_headers)).json()
    assert second["nft"]["token_name"] == "Scout #2"
    assert len((await db.execute(select(AgentNft))).scalars().all()) == 2


async def test_serial_ignores_names_that_only_share_a_prefix(
    client: AsyncClient, db: AsyncSession, user_headers, upstream
):
    agent = await _agent(db)
    for name in ("Scout #2 Elite #1", "Scout #x", "Scout #1"):
        db.add(AgentNft(agent_id=agent.id, user_id=USER_ID, token_name=name, token_symbol="XCLAW", serial_number=1))
    await db.commit()
    upstream.handler = _site

    data = (await client.post(API, json=_body(agent), headers=user_headers)).json()
    assert data["nft"]["token_name"] == "Scout #2"


async def test_ownership(client: AsyncClient, db: AsyncSession, user_headers, other_user_headers, upstream):
    agent = await _agent(db)
    upstream.handler = _site

    forbidden = await client.post(API, json=_body(agent), headers=other_user_headers)
    assert forbidden.status_code == 403
    missing = await client.post(API, json={**_body(agent), "agent_id": "nope"}, headers=user_headers)
    assert missing.status_code == 404
    assert upstream.requests == []


async def test_avatar_fetch_failure(client: AsyncClient, db: AsyncSession, user_headers, upstream, storage):
    agent = await _agent(db)
    upstream.handler = lambda request: httpx.Response(503)

    response = await client.post(API, json=_body(agent), headers=user_headers)
    assert response.status_code == 502
    assert storage.objects == {}


async def test_storage_failure(client: AsyncClient, db: AsyncSession, user_headers, upstream, storage):
    agent = await _agent(db)
    upstream.handler = _site
    storage.fail = True

    response = await client.post(API, json=_body(agent), headers=user_headers)
    assert response.status_code == 502
    assert (await db.execute(select(AgentNft))).scalars().all() == []


async def test_awaiting_wallet(client: AsyncClient, db: AsyncSession, user_headers, upstream, settings_env):
    settings_env(nft_mint_api_url="https://mint.test/mint")
    agent = await _agent(db)
    upstream.handler = _site

    data = (await client.post(API, json=_body(agent), headers=user_headers)).json()
    assert data["status"] == "awaiting_wallet"
    assert all(r.url.host != "mint.test" for r in upstream.requests)


async def test_minted(client: AsyncClient, db: AsyncSession, user_headers, upstream, settings_env):
    settings_env(nft_mint_api_url="https://mint.test/mint", nft_mint_api_key="mint-key")
    agent = await _agent(db)
    db.add(Wallet(user_id=USER_ID, address="So1Owner"))
    await db.commit()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "mint.test":
            return httpx.Response(200, json={"mint_address": "MintAddr1", "tx_hash": "sig"})
        return _site(request)

    upstream.handler = handler

    data = (await client.post(API, json=_body(agent), headers=user_headers)).json()
    assert data["status"] == "minted"
    assert data["mint_address"] == "MintAddr1"
    assert data["nft"]["mint_tx_hash"] == "sig"

    mint_call = next(r for r in upstream.requests if r.url.host == "mint.test")
    assert mint_call.headers["x-api-key"] == "mint-key"
    assert json.loads(mint_call.content)["recipient"] == "So1Owner"


async def test_mint_failure_is_recorded(client: AsyncClient, db: AsyncSession, user_headers, upstream, settings_env):
    settings_env(nft_mint_api_url="https://mint.test/mint")
    agent = await _agent(db)
    db.add(Wallet(user_id=USER_ID, address="So1Owner"))
    await db.commit()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "mint.test":
            return httpx.Response(500)
        return _site(request)

    upstream.handler = handler

    response = await client.post(API, json=_body(agent), headers=user_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "mint_failed"
    nft = (await db.execute(select(AgentNft))).scalar_one()
    assert nft.error
