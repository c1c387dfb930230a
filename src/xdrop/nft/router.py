"""NFT mint endpoint."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_current_user_id
from xdrop.clients import get_http_client
from xdrop.database import get_session
from xdrop.errors import to_http
from xdrop.nft.schemas import MintRequest, MintResponse, NftResponse
from xdrop.nft.service import mint_agent_nft
from xdrop.storage.service import BaseObjectStorage, get_storage

router = APIRouter(prefix="/api/v1/nfts", tags=["NFT"])


@router.post("/mint", response_model=MintResponse)
async def mint_endpoint(
    body: MintRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
    storage: BaseObjectStorage = Depends(get_storage),
):
    """Mint (or prepare) the ownership NFT for one of the caller's agents."""
    try:
        nft = await mint_agent_nft(db, http, storage, user_id, body)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return MintResponse(
        nft=NftResponse.model_validate(nft),
        image_url=nft.image_url,
        metadata_uri=nft.metadata_uri,
        mint_address=nft.mint_address,
        status=nft.status,
    )
