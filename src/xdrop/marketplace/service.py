"""Agent template purchases (paid from the USDC wallet) and free trials."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.models import Agent, AgentPurchase, AgentTrial, Wallet
from xdrop.errors import ServiceError
from xdrop.marketplace.schemas import PurchaseRequest, TemplateRequest
from xdrop.timeutil import utcnow

logger = logging.getLogger(__name__)


async def get_usdc_wallet(db: AsyncSession, user_id: str) -> Wallet | None:
    result = await db.execute(
        select(Wallet).where(Wallet.user_id == user_id, Wallet.currency == "USDC").limit(1)
    )
    return result.scalar_one_or_none()


async def purchase_template(db: AsyncSession, user_id: str, req: PurchaseRequest) -> tuple[Agent, float]:
    """
    Buy an agent template with the caller's USDC balance.

    The deduction, the published agent and the purchase row are flushed in
    one session; the router's commit makes them visible together.

    Returns:
        (agent, new wallet balance)
    """
    wallet = await get_usdc_wallet(db, user_id)
    if wallet is None:
        raise ServiceError("No USDC wallet found. Please create a wallet first.")

    price = req.price or get_settings().default_template_price
    if (wallet.balance or 0) < price:
        raise ServiceError(
            f"Insufficient USDC balance. You need ${price:g} but have ${wallet.balance or 0:g}."
        )

    now = utcnow()
    wallet.balance = (wallet.balance or 0) - price
    wallet.updated_at = now

    agent = Agent(
        creator_id=user_id,
        name=req.template_name,
        description=req.template_description or req.template_name,
        short_description=req.template_description,
        avatar=req.template_avatar or "🤖",
        category=req.template_category,
        status="published",
        template_id=req.template_id,
        price=price,
        monthly_return_min=req.monthly_return_min,
        monthly_return_max=req.monthly_return_max,
        purchased_at=now,
        is_trial=False,
        trial_earnings_locked=0.0,
        created_at=now,
    )
    db.add(agent)
    await db.flush()

    db.add(AgentPurchase(user_id=user_id, agent_id=agent.id, price_paid=price, subscription_status="one_time"))
    await db.flush()
    logger.info("Template %s purchased by %s for %.2f", req.template_id, user_id, price)
    return agent, wallet.balance


async def start_trial(db: AsyncSession, user_id: str, req: TemplateRequest) -> tuple[Agent, AgentTrial]:
    """One earnings-locked trial per user per template."""
    existing = await db.execute(
        select(AgentTrial.id).where(AgentTrial.user_id == user_id, AgentTrial.template_id == req.template_id)
    )
    if existing.first() is not None:
        raise ServiceError(
            "You have already used your free trial for this agent. Each user gets one trial per agent."
        )

    now = utcnow()
    agent = Agent(
        creator_id=user_id,
        name=f"{req.template_name} (Trial)",
        description=req.template_description or req.template_name,
        short_description=req.template_description,
        avatar=req.template_avatar or "🤖",
        category=req.template_category,
        status="published",
        template_id=req.template_id,
        price=0.0,
        monthly_return_min=req.monthly_return_min,
        monthly_return_max=req.monthly_return_max,
        is_trial=True,
        trial_earnings_locked=0.0,
        created_at=now,
    )
    db.add(agent)
    await db.flush()

    trial = AgentTrial(
        user_id=user_id,
        template_id=req.template_id,
        agent_id=agent.id,
        status="active",
        expires_at=now + timedelta(days=get_settings().trial_days),
        created_at=now,
    )
    db.add(trial)
    await db.flush()
    logger.info("Trial of %s started by %s", req.template_id, user_id)
    return agent, trial
