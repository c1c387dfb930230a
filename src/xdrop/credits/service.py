"""Credit balance and append-only credit ledger.

Every balance change writes a CreditTransaction carrying the resulting
balance, so the ledger replays to the profile's current `credits`.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.db.models import CreditTransaction, Profile
from xdrop.errors import NotFoundError, ServiceError

logger = logging.getLogger(__name__)

# Spend costs charged by the clients
CREDIT_COSTS = {
    "chat_message": 1,
    "agent_creation": 10,
    "voice_message": 3,
}


async def apply_credit_change(
    db: AsyncSession,
    profile: Profile,
    amount: int,
    tx_type: str,
    description: str | None = None,
) -> CreditTransaction:
    """
    Add (positive) or deduct (negative) credits and append a ledger row.

    Raises:
        ServiceError: The deduction would take the balance below zero.
    """
    new_balance = (profile.credits or 0) + amount
    if new_balance < 0:
        raise ServiceError("Insufficient credits")

    profile.credits = new_balance
    tx = CreditTransaction(
        user_id=profile.id,
        amount=amount,
        balance_after=new_balance,
        type=tx_type,
        description=description,
    )
    db.add(tx)
    await db.flush()
    logger.info("Credits %+d (%s) for %s, balance %d", amount, tx_type, profile.id, new_balance)
    return tx


async def spend_credits(
    db: AsyncSession, profile: Profile, amount: int, tx_type: str, description: str | None = None
) -> CreditTransaction:
    if amount <= 0:
        raise ServiceError("amount must be positive")
    return await apply_credit_change(db, profile, -amount, tx_type, description)


async def top_up_credits(
    db: AsyncSession, user_id: str, amount: int, description: str | None = None
) -> CreditTransaction:
    """Manual top-up by an admin."""
    if amount <= 0:
        raise ServiceError("amount must be positive")
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("User not found")
    return await apply_credit_change(db, profile, amount, "manual_top_up", description or "Admin top-up")


async def list_transactions(
    db: AsyncSession, user_id: str, *, limit: int = 50, offset: int = 0
) -> tuple[list[CreditTransaction], int]:
    """The user's ledger, newest first, with the unpaginated total."""
    base = select(CreditTransaction).where(CreditTransaction.user_id == user_id)
    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar_one()
    result = await db.execute(
        base.order_by(CreditTransaction.created_at.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total
