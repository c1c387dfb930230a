"""Admin back-office queries.

Listings are paginated with a fixed page size and a 0-based page index; each
returns the page rows plus an unpaginated `total` for the same filter. Related
rows (profiles, agents, bots) are fetched in one extra query per relation and
attached through id -> row maps.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog
from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.base import Base
from xdrop.db.models import (
    Agent,
    AgentManifest,
    AgentPurchase,
    AgentTrial,
    CreditTransaction,
    PlatformSetting,
    Profile,
    Report,
    SocialBot,
    SocialInteraction,
    SocialPost,
    UserRole,
    Wallet,
)
from xdrop.errors import NotFoundError, ServiceError
from xdrop.timeutil import utcnow

logger = structlog.get_logger()

USER_ROLES = frozenset({"admin", "moderator", "user"})
BOT_STATUSES = frozenset({"pending", "active", "verified", "banned"})
AGENT_STATUSES = frozenset({"draft", "published", "archived"})
REPORT_STATUSES = frozenset({"pending", "in_review", "resolved", "dismissed"})

TRANSACTION_SORTS = {
    "created_at": CreditTransaction.created_at,
    "amount": CreditTransaction.amount,
    "balance_after": CreditTransaction.balance_after,
    "type": CreditTransaction.type,
}
WALLET_SORTS = {
    "updated_at": Wallet.updated_at,
    "balance": Wallet.balance,
    "created_at": Wallet.created_at,
}

# Hidden from the admin bot listing
_BOT_SECRET_FIELDS = frozenset({"api_key_hash", "api_key_prefix"})

_UNKNOWN_PROFILE = {"display_name": "Unknown", "avatar_url": None}


# ── Helpers ──


def row_to_dict(obj: Base, exclude: frozenset[str] = frozenset()) -> dict[str, Any]:
    """Column values of an ORM row as a plain dict."""
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns if c.key not in exclude}


async def paginate(db: AsyncSession, query: Select, page: int) -> tuple[list[Any], int]:  # type: ignore[type-arg]
    """Run `query` for one page and count the unpaginated result."""
    size = get_settings().admin_page_size
    total = (await db.execute(select(func.count()).select_from(query.order_by(None).subquery()))).scalar_one()
    result = await db.execute(query.offset(page * size).limit(size))
    return list(result.scalars().all()), total


async def _map_by_id(db: AsyncSession, model: type[Base], ids: Iterable[str | None]) -> dict[str, Any]:
    wanted = {i for i in ids if i}
    if not wanted:
        return {}
    result = await db.execute(select(model).where(model.id.in_(wanted)))  # type: ignore[attr-defined]
    return {row.id: row for row in result.scalars().all()}


def _profile_summary(profile: Profile | None) -> dict[str, Any]:
    if profile is None:
        return dict(_UNKNOWN_PROFILE)
    return {"id": profile.id, "display_name": profile.display_name, "avatar_url": profile.avatar_url}


def _sort_column(sorts: dict[str, Any], sort: str, direction: str) -> Any:  # noqa: ANN401
    if sort not in sorts:
        raise ServiceError(f"Invalid sort field: {sort}")
    column = sorts[sort]
    return column.asc() if direction == "asc" else column.desc()


# ── Users ──


async def list_users(db: AsyncSession, page: int) -> dict[str, Any]:
    """Profiles newest first with their roles, bots owned and agents created."""
    profiles, total = await paginate(db, select(Profile).order_by(Profile.created_at.desc()), page)
    ids = [p.id for p in profiles]

    roles: dict[str, list[str]] = {}
    bot_counts: dict[str, int] = {}
    agent_counts: dict[str, int] = {}
    if ids:
        role_rows = await db.execute(select(UserRole.user_id, UserRole.role).where(UserRole.user_id.in_(ids)))
        for user_id, role in role_rows.all():
            roles.setdefault(user_id, []).append(role)
        bot_counts = dict(
            (await db.execute(
                select(SocialBot.owner_id, func.count()).where(SocialBot.owner_id.in_(ids)).group_by(SocialBot.owner_id)
            )).all()
        )
        agent_counts = dict(
            (await db.execute(
                select(Agent.creator_id, func.count()).where(Agent.creator_id.in_(ids)).group_by(Agent.creator_id)
            )).all()
        )

    users = [
        {
            **row_to_dict(p),
            "roles": roles.get(p.id, []),
            "bots_count": bot_counts.get(p.id, 0),
            "agents_count": agent_counts.get(p.id, 0),
        }
        for p in profiles
    ]
    return {"users": users, "total": total, "page": page}


async def set_user_role(db: AsyncSession, user_id: str, role: str) -> None:
    """Replace the user's roles with `role`; `remove` clears them all."""
    if role != "remove" and role not in USER_ROLES:
        raise ServiceError(f"Invalid role: {role}")
    await db.execute(delete(UserRole).where(UserRole.user_id == user_id))
    if role != "remove":
        db.add(UserRole(user_id=user_id, role=role))
    await db.flush()
    logger.info("admin_role_set", user_id=user_id, role=role)


# ── Bots & posts ──


async def list_bots(db: AsyncSession) -> dict[str, Any]:
    limit = get_settings().admin_bot_list_limit
    total = (await db.execute(select(func.count()).select_from(SocialBot))).scalar_one()
    result = await db.execute(select(SocialBot).order_by(SocialBot.created_at.desc()).limit(limit))
    bots = [row_to_dict(b, _BOT_SECRET_FIELDS) for b in result.scalars().all()]
    return {"bots": bots, "total": total}


async def update_bot_status(db: AsyncSession, bot_id: str, status: str) -> None:
    if status not in BOT_STATUSES:
        raise ServiceError(f"Invalid status: {status}")
    bot = await db.get(SocialBot, bot_id)
    if bot is None:
        raise NotFoundError("Bot not found")
    bot.status = status
    await db.flush()
    logger.info("admin_bot_status", bot_id=bot_id, status=status)


async def list_posts(db: AsyncSession, page: int) -> dict[str, Any]:
    query = select(SocialPost).where(SocialPost.parent_post_id.is_(None)).order_by(SocialPost.created_at.desc())
    posts, total = await paginate(db, query, page)
    items = [
        {
            **row_to_dict(p),
            "bot": {"name": p.bot.name, "handle": p.bot.handle, "avatar": p.bot.avatar} if p.bot else None,
        }
        for p in posts
    ]
    return {"posts": items, "total": total, "page": page}


async def delete_post(db: AsyncSession, post_id: str) -> None:
    """Remove a post's interactions, then the post."""
    post = await db.get(SocialPost, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    await db.execute(delete(SocialInteraction).where(SocialInteraction.post_id == post_id))
    await db.delete(post)
    await db.flush()
    logger.info("admin_post_deleted", post_id=post_id)


# ── Agents, purchases, trials ──


async def list_agents(db: AsyncSession, page: int) -> dict[str, Any]:
    agents, total = await paginate(db, select(Agent).order_by(Agent.created_at.desc()), page)
    creators = await _map_by_id(db, Profile, (a.creator_id for a in agents))

    manifests: list[dict[str, Any]] = []
    agent_ids = [a.id for a in agents]
    if agent_ids:
        result = await db.execute(select(AgentManifest).where(AgentManifest.agent_id.in_(agent_ids)))
        manifests = [
            {"agent_id": m.agent_id, "triggers": m.triggers, "tool_permissions": m.tool_permissions}
            for m in result.scalars().all()
        ]

    items = [{**row_to_dict(a), "profile": _profile_summary(creators.get(a.creator_id))} for a in agents]
    return {"agents": items, "manifests": manifests, "total": total, "page": page}


async def update_agent_status(db: AsyncSession, agent_id: str, status: str) -> None:
    if status not in AGENT_STATUSES:
        raise ServiceError(f"Invalid status: {status}")
    agent = await db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    agent.status = status
    await db.flush()
    logger.info("admin_agent_status", agent_id=agent_id, status=status)


def _agent_summary(agent: Agent | None, fallback_name: str = "Unknown") -> dict[str, Any]:
    if agent is None:
        return {"name": fallback_name}
    return {
        "id": agent.id,
        "name": agent.name,
        "avatar": agent.avatar,
        "price": agent.price,
        "template_id": agent.template_id,
    }


async def list_purchases(db: AsyncSession, page: int) -> dict[str, Any]:
    purchases, total = await paginate(db, select(AgentPurchase).order_by(AgentPurchase.purchased_at.desc()), page)
    agents = await _map_by_id(db, Agent, (p.agent_id for p in purchases))
    profiles = await _map_by_id(db, Profile, (p.user_id for p in purchases))
    items = [
        {
            **row_to_dict(p),
            "agent": _agent_summary(agents.get(p.agent_id)),
            "profile": _profile_summary(profiles.get(p.user_id)),
        }
        for p in purchases
    ]
    return {"purchases": items, "total": total, "page": page}


async def list_trials(db: AsyncSession, page: int) -> dict[str, Any]:
    trials, total = await paginate(db, select(AgentTrial).order_by(AgentTrial.created_at.desc()), page)
    agents = await _map_by_id(db, Agent, (t.agent_id for t in trials))
    profiles = await _map_by_id(db, Profile, (t.user_id for t in trials))
    items = [
        {
            **row_to_dict(t),
            "agent": _agent_summary(agents.get(t.agent_id or ""), fallback_name=t.template_id),
            "profile": _profile_summary(profiles.get(t.user_id)),
        }
        for t in trials
    ]
    return {"trials": items, "total": total, "page": page}


# ── Ledgers ──


async def list_transactions(
    db: AsyncSession,
    page: int,
    *,
    tx_type: str | None = None,
    search: str | None = None,
    sort: str = "created_at",
    direction: str = "desc",
) -> dict[str, Any]:
    """Credit ledger across all users."""
    query = select(CreditTransaction)
    if tx_type and tx_type != "all":
        query = query.where(CreditTransaction.type == tx_type)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(CreditTransaction.description.ilike(pattern), CreditTransaction.type.ilike(pattern))
        )
    query = query.order_by(_sort_column(TRANSACTION_SORTS, sort, direction))

    txs, total = await paginate(db, query, page)
    profiles = await _map_by_id(db, Profile, (t.user_id for t in txs))
    items = [{**row_to_dict(t), "profile": _profile_summary(profiles.get(t.user_id))} for t in txs]
    return {"transactions": items, "total": total, "page": page}


async def list_wallets(
    db: AsyncSession,
    page: int,
    *,
    balance: str | None = None,
    search: str | None = None,
    sort: str = "updated_at",
    direction: str = "desc",
) -> dict[str, Any]:
    query = select(Wallet)
    if balance == "funded":
        query = query.where(Wallet.balance > 0)
    elif balance == "empty":
        query = query.where(Wallet.balance <= 0)
    if search:
        query = query.where(Wallet.address.ilike(f"%{search}%"))
    query = query.order_by(_sort_column(WALLET_SORTS, sort, direction))

    wallets, total = await paginate(db, query, page)
    profiles = await _map_by_id(db, Profile, (w.user_id for w in wallets))
    items = [{**row_to_dict(w), "profile": _profile_summary(profiles.get(w.user_id))} for w in wallets]
    return {"wallets": items, "total": total, "page": page}


# ── Reports ──


async def list_reports(db: AsyncSession, page: int, status: str | None = None) -> dict[str, Any]:
    query = select(Report)
    if status and status != "all":
        query = query.where(Report.status == status)
    reports, total = await paginate(db, query.order_by(Report.created_at.desc()), page)
    profiles = await _map_by_id(db, Profile, (r.user_id for r in reports))
    items = [{**row_to_dict(r), "profile": _profile_summary(profiles.get(r.user_id))} for r in reports]
    return {"reports": items, "total": total, "page": page}


async def update_report(
    db: AsyncSession, report_id: str, *, status: str | None = None, admin_notes: str | None = None
) -> Report:
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found")
    if status is not None:
        if status not in REPORT_STATUSES:
            raise ServiceError(f"Invalid status: {status}")
        report.status = status
    if admin_notes is not None:
        report.admin_notes = admin_notes
    report.updated_at = utcnow()
    await db.flush()
    return report


async def delete_report(db: AsyncSession, report_id: str) -> None:
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found")
    await db.delete(report)
    await db.flush()


# ── Platform settings ──


async def get_platform_settings(db: AsyncSession) -> list[dict[str, Any]]:
    result = await db.execute(select(PlatformSetting).order_by(PlatformSetting.key))
    return [
        {"key": s.key, "value": s.value, "description": s.description, "updated_at": s.updated_at}
        for s in result.scalars().all()
    ]


async def save_platform_settings(db: AsyncSession, values: dict[str, Any], admin_id: str) -> int:
    """Write each supplied key (creating unknown keys). Returns the number written."""
    now = utcnow()
    for key, value in values.items():
        setting = await db.get(PlatformSetting, key)
        if setting is None:
            db.add(PlatformSetting(key=key, value=value, updated_at=now, updated_by=admin_id))
        else:
            setting.value = value
            setting.updated_at = now
            setting.updated_by = admin_id
    await db.flush()
    logger.info("admin_settings_saved", keys=sorted(values), admin_id=admin_id)
    return len(values)
