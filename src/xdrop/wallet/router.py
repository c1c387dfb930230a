"""Wallet endpoints: creation, upstream proxy, and the provider webhook."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_current_user_id
from xdrop.clients import get_http_client
from xdrop.config import get_settings
from xdrop.database import get_session
from xdrop.errors import to_http
from xdrop.timeutil import utcnow
from xdrop.wallet import service
from xdrop.wallet.signature import verify_signature

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Wallet"])


@router.post("/wallets")
async def create_wallet_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> dict[str, Any]:
    """Create the caller's custodial wallet. Key material is returned only this once."""
    try:
        result = await service.create_wallet(db, http, user_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return result


@router.api_route("/wallet-proxy", methods=["GET", "POST"])
async def wallet_proxy_endpoint(
    request: Request,
    _user_id: str = Depends(get_current_user_id),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Forward `?action=...` calls to the wallet API, passing its status through."""
    body: Any = None
    if request.method == "POST":
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError as e:
                raise HTTPException(status_code=400, detail="Invalid JSON body") from e
    try:
        status, data = await service.proxy_wallet_api(http, request.method, dict(request.query_params), body)
    except ValueError as e:
        raise to_http(e) from e
    return JSONResponse(status_code=status, content=data)


@router.post("/wallet-webhook")
async def wallet_webhook_endpoint(request: Request, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Provider callback. The raw body must carry a valid HMAC-SHA256 signature."""
    secret = get_settings().wallet_webhook_secret
    if not secret:
        logger.error("wallet_webhook_secret_missing")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    raw = await request.body()
    signature = request.headers.get("x-webhook-signature")
    event = request.headers.get("x-webhook-event") or "unknown"
    if not signature:
        raise HTTPException(status_code=401, detail="Missing signature")
    if not verify_signature(secret, raw, signature):
        logger.warning("webhook_signature_mismatch", wallet_event=event)
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e
    data = payload.get("data") if isinstance(payload, dict) else None

    logger.info("wallet_webhook_received", wallet_event=event)
    try:
        await service.apply_webhook_event(db, event, data if isinstance(data, dict) else {})
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e

    return {"received": True, "event": event, "timestamp": utcnow().isoformat()}
