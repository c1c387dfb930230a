"""Admin analytics roll-up: all-time totals and 7-day period comparisons."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.db.models import (
    Agent,
    AgentPurchase,
    AgentTrial,
    CreditTransaction,
    Profile,
    Report,
    SocialBot,
    SocialPost,
)
from xdrop.timeutil import utcnow

PERIOD_DAYS = 7


def percent_change(current: int | float, previous: int | float) -> float:
    """Period-over-period change in percent, one decimal. 0 -> n counts as +100%."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def conversion_rate(converted: int, total: int) -> int:
    """Whole-percent share of trials that converted."""
    return round(converted / total * 100) if total > 0 else 0


def count_converted_trials(
    trials: list[tuple[str, str]],
    purchases: list[tuple[str, str | None]],
) -> int:
    """
    Trials whose user later bought an agent built from the same template.

    Args:
        trials: (user_id, template_id) per trial.
        purchases: (user_id, template_id of the purchased agent) per purchase.
    """
    bought = {(user_id, template_id or "") for user_id, template_id in purchases}
    return sum(1 for user_id, template_id in trials if (user_id, template_id) in bought)


async def _count(db: AsyncSession, model: Any) -> int:  # noqa: ANN401
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _count_between(db: AsyncSession, column: Any, start: datetime, end: datetime) -> int:  # noqa: ANN401
    query = select(func.count()).where(column >= start, column < end)
    return (await db.execute(query)).scalar_one()


async def _period(db: AsyncSession, column: Any, now: datetime) -> dict[str, float]:  # noqa: ANN401
    window = timedelta(days=PERIOD_DAYS)
    current = await _count_between(db, column, now - window, now)
    previous = await _count_between(db, column, now - 2 * window, now - window)
    return {"current": current, "previous": previous, "change": percent_change(current, previous)}


async def build_analytics(db: AsyncSession) -> dict[str, Any]:
    """Everything the admin dashboard's analytics tab shows, in one payload."""
    now = utcnow()

    totals = {
        "users": await _count(db, Profile),
        "bots": await _count(db, SocialBot),
        "posts": await _count(db, SocialPost),
        "agents": await _count(db, Agent),
        "purchases": await _count(db, AgentPurchase),
        "trials": await _count(db, AgentTrial),
    }

    periods = {
        "signups": await _period(db, Profile.created_at, now),
        "posts": await _period(db, SocialPost.created_at, now),
        "purchases": await _period(db, AgentPurchase.purchased_at, now),
        "trials": await _period(db, AgentTrial.created_at, now),
    }

    revenue = float((await db.execute(select(func.coalesce(func.sum(AgentPurchase.price_paid), 0)))).scalar_one())
    avg_purchase = round(revenue / totals["purchases"]) if totals["purchases"] else 0

    trial_rows = (await db.execute(select(AgentTrial.user_id, AgentTrial.template_id))).all()
    purchase_query = select(AgentPurchase.user_id, Agent.template_id).join(
        Agent, Agent.id == AgentPurchase.agent_id, isouter=True
    )
    purchase_rows = (await db.execute(purchase_query)).all()
    converted = count_converted_trials(
        [(u, t) for u, t in trial_rows],
        [(u, t) for u, t in purchase_rows],
    )

    credits_spent = (
        await db.execute(
            select(func.coalesce(func.sum(-CreditTransaction.amount), 0)).where(CreditTransaction.amount < 0)
        )
    ).scalar_one()

    reports_by_status = dict(
        (await db.execute(select(Report.status, func.count()).group_by(Report.status))).all()
    )

    return {
        "totals": totals,
        "periods": periods,
        "recent_signups": periods["signups"]["current"],
        "total_revenue": revenue,
        "avg_purchase_value": avg_purchase,
        "converted_trials": converted,
        "conversion_rate": conversion_rate(converted, totals["trials"]),
        "credits_spent": int(credits_spent),
        "reports_by_status": reports_by_status,
    }
