"""
Agent ownership NFT pipeline.

Steps: serial number -> deterministic avatar -> image upload -> metadata
upload -> optional on-chain mint. The record is saved with whatever stage
was reached (`metadata_ready`, `awaiting_wallet`, `mint_failed`, `minted`);
earlier uploads are never rolled back.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.models import Agent, AgentNft, Wallet
from xdrop.errors import ForbiddenError, NotFoundError, UpstreamError
from xdrop.nft.schemas import MintRequest
from xdrop.storage.service import BaseObjectStorage, StorageError
from xdrop.timeutil import utcnow

logger = structlog.get_logger()

DEFAULT_PRICE_USDC = 100


def avatar_index(name: str, total: int) -> int:
    """1-based avatar number: code point sum of the name, mod `total`."""
    return sum(ord(c) for c in (name or "bot")) % total + 1


async def next_serial(db: AsyncSession, agent_name: str) -> int:
    """Serial numbers count up per agent name, starting at 1.

    Only `<name> #<digits>` counts, so "Bot #2 Deluxe #1" is not a "Bot" token.
    """
    query = select(AgentNft.token_name).where(AgentNft.token_name.startswith(f"{agent_name} #", autoescape=True))
    pattern = re.compile(re.escape(agent_name) + r" #\d+")
    names = (await db.execute(query)).scalars().all()
    return sum(1 for name in names if pattern.fullmatch(name)) + 1


def format_usdc(amount: float) -> str:
    """Fixed-point USDC amount without trailing zeros: 49, 49.5, 0.000001."""
    return f"{amount:.6f}".rstrip("0").rstrip(".")


def build_metadata(
    req: MintRequest, *, token_name: str, symbol: str, serial: int, image_url: str, site_url: str
) -> dict[str, Any]:
    """Metaplex-style token metadata."""
    price = req.price_paid or DEFAULT_PRICE_USDC
    return {
        "name": token_name,
        "symbol": symbol,
        "description": (
            f"OpenClaw AI Agent NFT - {req.agent_description or req.agent_name}. "
            f"Serial #{serial}. Purchased for ${format_usdc(price)} USDC."
        ),
        "image": image_url,
        "external_url": f"{site_url.rstrip('/')}/marketplace",
        "attributes": [
            {"trait_type": "Agent Name", "value": req.agent_name},
            {"trait_type": "Category", "value": req.agent_category or "General"},
            {"trait_type": "Serial Number", "value": str(serial)},
            {"trait_type": "Price Paid (USDC)", "value": format_usdc(price)},
            {"trait_type": "Avatar", "value": req.agent_avatar or "🤖"},
            {"trait_type": "Platform", "value": "OpenClaw / XDROP"},
        ],
        "properties": {"category": "image", "creators": [{"address": "", "share": 100}]},
    }


async def _call_mint_api(
    http: httpx.AsyncClient, *, recipient: str, metadata_uri: str, name: str, symbol: str
) -> dict[str, Any]:
    settings = get_settings()
    response = await http.post(
        settings.nft_mint_api_url,
        json={"recipient": recipient, "metadata_uri": metadata_uri, "name": name, "symbol": symbol},
        headers={"x-api-key": settings.nft_mint_api_key},
        timeout=settings.http_timeout_seconds,
    )
    response.raise_for_status()
    data: dict[str, Any] = response.json()
    return data


async def mint_agent_nft(
    db: AsyncSession,
    http: httpx.AsyncClient,
    storage: BaseObjectStorage,
    user_id: str,
    req: MintRequest,
) -> AgentNft:
    """Run the mint pipeline for one of the caller's agents."""
    settings = get_settings()

    agent = await db.get(Agent, req.agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    if agent.creator_id != user_id:
        raise ForbiddenError("You do not own this agent")

    serial = await next_serial(db, req.agent_name)
    token_name = f"{req.agent_name} #{serial}"
    symbol = settings.nft_token_symbol

    index = avatar_index(req.agent_name, settings.nft_total_avatars)
    avatar_url = f"{settings.site_url.rstrip('/')}/avatars/bot-{index}.png"
    logger.info("nft_avatar_selected", avatar=index, url=avatar_url)
    try:
        avatar = await http.get(avatar_url, timeout=settings.http_timeout_seconds)
    except httpx.HTTPError as e:
        raise UpstreamError(f"Failed to fetch avatar image: {e}") from e
    if avatar.is_error:
        raise UpstreamError(f"Failed to fetch avatar image: {avatar.status_code}")

    bucket = settings.bucket_nft_images
    try:
        image_url = await storage.upload(bucket, f"{req.agent_id}/{serial}.png", avatar.content, "image/png")
        metadata = build_metadata(
            req, token_name=token_name, symbol=symbol, serial=serial, image_url=image_url, site_url=settings.site_url
        )
        metadata_uri = await storage.upload(
            bucket,
            f"{req.agent_id}/{serial}_metadata.json",
            json.dumps(metadata).encode(),
            "application/json",
        )
    except StorageError as e:
        raise UpstreamError(f"Failed to upload NFT assets: {e}") from e

    nft = AgentNft(
        agent_id=req.agent_id,
        user_id=user_id,
        token_name=token_name,
        token_symbol=symbol,
        serial_number=serial,
        image_url=image_url,
        metadata_uri=metadata_uri,
        status="metadata_ready",
    )

    if settings.nft_mint_api_url:
        wallet = (await db.execute(select(Wallet).where(Wallet.user_id == user_id).limit(1))).scalar_one_or_none()
        if wallet is None:
            nft.status = "awaiting_wallet"
        else:
            try:
                minted = await _call_mint_api(
                    http, recipient=wallet.address, metadata_uri=metadata_uri, name=token_name, symbol=symbol
                )
                nft.mint_address = minted.get("mint_address")
                nft.mint_tx_hash = minted.get("tx_hash")
                nft.minted_at = utcnow()
                nft.status = "minted"
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("nft_mint_failed", agent_id=req.agent_id, error=str(e))
                nft.status = "mint_failed"
                nft.error = str(e)[:500]

    db.add(nft)
    await db.flush()
    logger.info("nft_recorded", nft_id=nft.id, token_name=token_name, status=nft.status)
    return nft
