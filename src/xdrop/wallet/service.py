"""Custodial wallet creation, upstream API proxy and webhook ledger updates."""

from __future__ import annotations

import math
from typing import Any

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.models import Wallet, WalletTransaction
from xdrop.errors import NotConfiguredError, ServiceError, UpstreamError
from xdrop.timeutil import utcnow

logger = structlog.get_logger()

BALANCE_EVENTS = frozenset({"deposit", "withdrawal"})


# ---------------------------------------------------------------------------
# Wallet creation (Tatum)
# ---------------------------------------------------------------------------


async def create_wallet(db: AsyncSession, http: httpx.AsyncClient, user_id: str) -> dict[str, Any]:
    """
    Create the caller's Solana USDC wallet, or return the existing address.

    Key material from the provider is handed back once and never stored.
    """
    existing = (await db.execute(select(Wallet).where(Wallet.user_id == user_id).limit(1))).scalar_one_or_none()
    if existing is not None:
        return {"address": existing.address, "exists": True}

    settings = get_settings()
    if not settings.tatum_api_key:
        raise NotConfiguredError("Wallet provider is not configured")

    try:
        response = await http.get(
            f"{settings.tatum_api_url.rstrip('/')}/v3/solana/wallet",
            headers={"x-api-key": settings.tatum_api_key},
            timeout=settings.http_timeout_seconds,
        )
    except httpx.HTTPError as e:
        raise UpstreamError(f"Wallet provider unreachable: {e}") from e
    if response.is_error:
        raise UpstreamError(f"Tatum API failed [{response.status_code}]: {response.text[:200]}")

    created = response.json()
    address = created.get("address")
    if not address:
        raise UpstreamError("Wallet provider returned no address")

    now = utcnow()
    db.add(
        Wallet(
            user_id=user_id,
            address=address,
            balance=0.0,
            network="solana",
            currency="USDC",
            created_at=now,
            updated_at=now,
        )
    )
    await db.flush()
    logger.info("wallet_created", user_id=user_id, network="solana")
    return {
        "address": address,
        "mnemonic": created.get("mnemonic"),
        "private_key": created.get("privateKey"),
        "exists": False,
        "warning": "Save your mnemonic and private key securely. They will NOT be shown again.",
    }


# ---------------------------------------------------------------------------
# Upstream wallet API proxy
# ---------------------------------------------------------------------------


async def proxy_wallet_api(
    http: httpx.AsyncClient,
    method: str,
    params: dict[str, str],
    body: Any = None,  # noqa: ANN401
) -> tuple[int, Any]:
    """
    Forward a call to the custodial wallet API with the server's credentials.

    Returns:
        (upstream status code, upstream JSON body)
    """
    if not params.get("action"):
        raise ServiceError("Missing action parameter")

    settings = get_settings()
    if not settings.wallet_api_url:
        raise NotConfiguredError("Wallet API is not configured")

    headers = {
        "Content-Type": "application/json",
        "apikey": settings.wallet_anon_key,
        "x-api-key": settings.wallet_api_key,
    }
    try:
        response = await http.request(
            "POST" if method == "POST" else "GET",
            settings.wallet_api_url,
            params=params,
            headers=headers,
            json=body if method == "POST" else None,
            timeout=settings.http_timeout_seconds,
        )
    except httpx.HTTPError as e:
        raise UpstreamError(f"Wallet API unreachable: {e}") from e

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamError(f"Wallet API returned non-JSON response [{response.status_code}]") from e
    return response.status_code, data


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


async def apply_webhook_event(db: AsyncSession, event: str, data: dict[str, Any]) -> WalletTransaction | None:
    """
    Mirror a deposit/withdrawal into the wallet balance and the wallet ledger.

    Unknown events and unknown addresses are acknowledged without changes.
    Amounts must be finite and non-negative; withdrawals never take the
    balance below zero.
    """
    if event not in BALANCE_EVENTS:
        logger.info("wallet_webhook_ignored", wallet_event=event)
        return None

    address = data.get("to_address") if event == "deposit" else data.get("from_address")
    try:
        amount = float(data.get("amount") or 0)
    except (TypeError, ValueError) as e:
        raise ServiceError("Invalid amount") from e
    if not math.isfinite(amount) or amount < 0:
        raise ServiceError("Invalid amount")

    wallet = None
    if address:
        wallet = (await db.execute(select(Wallet).where(Wallet.address == address))).scalar_one_or_none()
    if wallet is None:
        logger.warning("wallet_webhook_unknown_address", address=address, chain=data.get("chain"))
        return None

    old_balance = wallet.balance or 0.0
    new_balance = old_balance + amount if event == "deposit" else max(0.0, old_balance - amount)
    wallet.balance = new_balance
    wallet.updated_at = utcnow()

    tx = WalletTransaction(
        wallet_id=wallet.id,
        type=event,
        amount=amount,
        balance_after=new_balance,
        chain=data.get("chain"),
        tx_hash=data.get("tx_hash") or data.get("hash"),
    )
    db.add(tx)
    await db.flush()
    logger.info("wallet_balance_updated", wallet_id=wallet.id, old=old_balance, new=new_balance, wallet_event=event)
    return tx
