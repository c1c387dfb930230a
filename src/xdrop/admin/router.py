"""Admin API: every route requires a JWT whose user holds the `admin` role."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.routing import APIRoute
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.admin import service
from xdrop.admin.analytics import build_analytics
from xdrop.admin.schemas import (
    CreditTopUpRequest,
    ReportUpdateRequest,
    SaveSettingsRequest,
    SetRoleRequest,
    StatusUpdateRequest,
)
from xdrop.auth.dependencies import authorize_admin
from xdrop.credits.service import top_up_credits
from xdrop.database import get_session
from xdrop.errors import to_http


class AdminRoute(APIRoute):
    """Checks the admin role before the body is parsed, so non-admins get 401/403, never 422."""

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def admin_only(request: Request) -> Response:
            await authorize_admin(request)
            return await handler(request)

        return admin_only


def current_admin_id(request: Request) -> str:
    return request.state.admin_id


router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], route_class=AdminRoute)

Page = Query(0, ge=0, description="0-based page index")
Direction = Literal["asc", "desc"]


# ── Users ──


@router.get("/users")
async def list_users(page: int = Page, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await service.list_users(db, page)


@router.post("/users/{user_id}/role")
async def set_role(user_id: str, body: SetRoleRequest, db: AsyncSession = Depends(get_session)):
    try:
        await service.set_user_role(db, user_id, body.role)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True}


@router.post("/users/{user_id}/credits")
async def top_up(user_id: str, body: CreditTopUpRequest, db: AsyncSession = Depends(get_session)):
    try:
        tx = await top_up_credits(db, user_id, body.amount, body.description)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "credits": tx.balance_after}


# ── Moderation ──


@router.get("/bots")
async def list_bots(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await service.list_bots(db)


@router.patch("/bots/{bot_id}/status")
async def update_bot_status(bot_id: str, body: StatusUpdateRequest, db: AsyncSession = Depends(get_session)):
    try:
        await service.update_bot_status(db, bot_id, body.status)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True}


@router.get("/posts")
async def list_posts(page: int = Page, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await service.list_posts(db, page)


@router.delete("/posts/{post_id}")
async def delete_post(post_id: str, db: AsyncSession = Depends(get_session)):
    try:
        await service.delete_post(db, post_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True}


# ── Agents ──


@router.get("/agents")
async def list_agents(page: int = Page, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await service.list_agents(db, page)


@router.patch("/agents/{agent_id}/status")
async def update_agent_status(agent_id: str, body: StatusUpdateRequest, db: AsyncSession = Depends(get_session)):
    try:
        await service.update_agent_status(db, agent_id, body.status)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True}


@router.get("/purchases")
async def list_purchases(page: int = Page, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await service.list_purchases(db, page)


@router.get("/trials")
async def list_trials(page: int = Page, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await service.list_trials(db, page)


# ── Ledgers ──


@router.get("/transactions")
async def list_transactions(
    page: int = Page,
    type: str | None = None,  # noqa: A002
    search: str | None = None,
    sort: str = "created_at",
    dir: Direction = "desc",  # noqa: A002
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        return await service.list_transactions(db, page, tx_type=type, search=search, sort=sort, direction=dir)
    except ValueError as e:
        raise to_http(e) from e


@router.get("/wallets")
async def list_wallets(
    page: int = Page,
    balance: Literal["all", "funded", "empty"] = "all",
    search: str | None = None,
    sort: str = "updated_at",
    dir: Direction = "desc",  # noqa: A002
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        return await service.list_wallets(db, page, balance=balance, search=search, sort=sort, direction=dir)
    except ValueError as e:
        raise to_http(e) from e


# ── Reports ──


@router.get("/reports")
async def list_reports(
    page: int = Page,
    status: str | None = None,
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await service.list_reports(db, page, status)


@router.patch("/reports/{report_id}")
async def update_report(report_id: str, body: ReportUpdateRequest, db: AsyncSession = Depends(get_session)):
    try:
        report = await service.update_report(db, report_id, status=body.status, admin_notes=body.admin_notes)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True, "report": service.row_to_dict(report)}


@router.delete("/reports/{report_id}")
async def delete_report(report_id: str, db: AsyncSession = Depends(get_session)):
    try:
        await service.delete_report(db, report_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return {"success": True}


# ── Analytics & settings ──


@router.get("/analytics")
async def analytics(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return await build_analytics(db)


@router.get("/settings")
async def get_settings_endpoint(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return {"settings": await service.get_platform_settings(db)}


@router.put("/settings")
async def save_settings_endpoint(
    body: SaveSettingsRequest,
    admin_id: str = Depends(current_admin_id),
    db: AsyncSession = Depends(get_session),
):
    updated = await service.save_platform_settings(db, body.settings, admin_id)
    await db.commit()
    return {"success": True, "updated": updated}


# Registered last so it only catches paths no route above matched
@router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def unknown_admin_path(path: str) -> None:
    raise HTTPException(status_code=404, detail=f"Unknown admin endpoint: {path}")
