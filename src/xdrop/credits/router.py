"""Credit balance and ledger endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_current_profile
from xdrop.config import get_settings
from xdrop.credits import service
from xdrop.credits.schemas import (
    BalanceResponse,
    CreditTransactionResponse,
    SpendRequest,
    SpendResponse,
    TransactionListResponse,
)
from xdrop.database import get_session
from xdrop.db.models import Profile
from xdrop.errors import to_http

router = APIRouter(prefix="/api/v1/credits", tags=["Credits"])


@router.get("", response_model=BalanceResponse)
async def get_balance(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    await db.commit()
    costs = {**service.CREDIT_COSTS, "agent_run": get_settings().agent_run_cost}
    return BalanceResponse(credits=profile.credits, costs=costs)


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    txs, total = await service.list_transactions(db, profile.id, limit=limit, offset=offset)
    return TransactionListResponse(
        transactions=[CreditTransactionResponse.model_validate(t) for t in txs],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/spend", response_model=SpendResponse)
async def spend(
    body: SpendRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Deduct credits for a metered action (chat message, agent creation, voice)."""
    try:
        tx = await service.spend_credits(db, profile, body.amount, body.type, body.description)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return SpendResponse(credits=profile.credits, transaction=CreditTransactionResponse.model_validate(tx))
