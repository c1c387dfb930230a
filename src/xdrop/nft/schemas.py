"""Pydantic schemas for NFT minting."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MintRequest(BaseModel):
    agent_id: str
    agent_name: str = Field(..., min_length=1, max_length=128)
    agent_description: str | None = None
    agent_category: str | None = None
    agent_avatar: str | None = None
    price_paid: float | None = None


class NftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: str
    user_id: str
    token_name: str
    token_symbol: str
    serial_number: int
    image_url: str | None = None
    metadata_uri: str | None = None
    mint_address: str | None = None
    mint_tx_hash: str | None = None
    status: str
    error: str | None = None
    minted_at: datetime | None = None
    created_at: datetime


class MintResponse(BaseModel):
    success: bool = True
    nft: NftResponse
    image_url: str | None = None
    metadata_uri: str | None = None
    mint_address: str | None = None
    status: str
