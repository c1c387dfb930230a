"""Marketplace endpoints: template purchase and free trial."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_current_user_id
from xdrop.config import get_settings
from xdrop.database import get_session
from xdrop.errors import to_http
from xdrop.marketplace import service
from xdrop.marketplace.schemas import (
    AgentResponse,
    PurchaseRequest,
    PurchaseResponse,
    TemplateRequest,
    TrialInfo,
    TrialResponse,
)

router = APIRouter(prefix="/api/v1/marketplace", tags=["Marketplace"])


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase_endpoint(
    body: PurchaseRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        agent, new_balance = await service.purchase_template(db, user_id, body)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return PurchaseResponse(agent=AgentResponse.model_validate(agent), new_balance=new_balance)


@router.post("/trial", response_model=TrialResponse)
async def trial_endpoint(
    body: TemplateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        agent, trial = await service.start_trial(db, user_id, body)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return TrialResponse(
        agent=AgentResponse.model_validate(agent),
        trial=TrialInfo(expires_at=trial.expires_at, days_remaining=get_settings().trial_days),
    )
