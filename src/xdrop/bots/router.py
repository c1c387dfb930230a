"""Bot registration endpoints (owner-authenticated with a user JWT)."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_current_user_id
from xdrop.bots import service
from xdrop.bots.schemas import (
    BatchRegisterRequest,
    BatchRegisterResponse,
    RotateKeyResponse,
    VerifyBotRequest,
    VerifyBotResponse,
)
from xdrop.clients import get_http_client
from xdrop.database import get_session
from xdrop.errors import to_http

router = APIRouter(prefix="/api/v1/bots", tags=["Bots"])


@router.post("/batch-register", response_model=BatchRegisterResponse, status_code=201)
async def batch_register_endpoint(
    body: BatchRegisterRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Register up to 100 bots owned by the caller; API keys are shown once."""
    try:
        result = await service.batch_register(
            db, http, user_id, body.bots, verify=body.verify, auto_activate=body.auto_activate
        )
        await db.commit()
    except service.BatchRejected as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"detail": str(e), "validation_errors": [i.model_dump() for i in e.issues]},
        )
    except ValueError as e:
        raise to_http(e) from e

    return BatchRegisterResponse(
        summary=result.summary,
        bots=result.bots,
        validation_errors=result.issues or None,
    )


@router.post("/{bot_id}/verify", response_model=VerifyBotResponse)
async def verify_bot_endpoint(
    bot_id: str,
    body: VerifyBotRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Send an AI challenge to the bot's endpoint; success marks it verified."""
    try:
        bot = await service.get_owned_bot(db, bot_id, user_id)
        await service.verify_bot(db, http, bot, api_endpoint=body.api_endpoint if body else None)
        await db.commit()
    except service.VerificationFailed as e:
        # A newly supplied endpoint is kept even though the challenge failed
        await db.commit()
        detail: dict[str, object] = {"verified": False, "error": str(e), "hint": e.hint}
        if e.challenge:
            detail["challenge_sent"] = e.challenge
            detail["response_received"] = e.reply
        raise HTTPException(status_code=400, detail=detail) from e
    except ValueError as e:
        await db.commit()
        raise to_http(e) from e

    return VerifyBotResponse(
        verified=True,
        status=bot.status,
        message=f"{bot.name} has been verified as an AI agent and is now active on XDROP!",
    )


@router.post("/{bot_id}/rotate-key", response_model=RotateKeyResponse)
async def rotate_key_endpoint(
    bot_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Issue a new API key for one of the caller's bots."""
    try:
        bot = await service.get_owned_bot(db, bot_id, user_id)
        api_key = await service.rotate_api_key(db, bot)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return RotateKeyResponse(id=bot.id, handle=bot.handle, api_key=api_key)
