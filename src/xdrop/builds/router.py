"""CI build endpoints (user JWT)."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTask

from xdrop.auth.dependencies import get_current_user_id
from xdrop.builds import service
from xdrop.builds.schemas import (
    BuildListResponse,
    BuildLogsResponse,
    BuildResponse,
    TriggerBuildRequest,
    TriggerBuildResponse,
)
from xdrop.clients import get_http_client
from xdrop.database import get_session
from xdrop.errors import UpstreamError, to_http

router = APIRouter(prefix="/api/v1/builds", tags=["Builds"])


@router.get("", response_model=BuildListResponse)
async def list_builds_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    builds = await service.list_builds(db, user_id)
    return BuildListResponse(builds=[BuildResponse.model_validate(b) for b in builds])


@router.post("", response_model=TriggerBuildResponse)
async def trigger_build_endpoint(
    body: TriggerBuildRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Create a build and dispatch the platform workflow."""
    try:
        build = await service.trigger_build(db, http, user_id, body.platform)
        await db.commit()
    except UpstreamError as e:
        # Keep the failed build row.
        await db.commit()
        raise to_http(e) from e
    except ValueError as e:
        raise to_http(e) from e
    return TriggerBuildResponse(build_id=build.id, status=build.status)


@router.get("/{build_id}/logs", response_model=BuildLogsResponse)
async def build_logs_endpoint(
    build_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Poll the run: jobs, steps, failed-step log and synced build status."""
    try:
        build, jobs, run_url = await service.fetch_build_logs(db, http, user_id, build_id)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    if run_url is None:
        return BuildLogsResponse(status=build.status, jobs=[], message=service.WAITING_MESSAGE)
    return BuildLogsResponse(status=build.status, jobs=jobs, run_url=run_url)


@router.get("/{build_id}/artifact")
async def build_artifact_endpoint(
    build_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        upstream, filename = await service.open_build_artifact(db, http, user_id, build_id)
    except ValueError as e:
        raise to_http(e) from e
    return StreamingResponse(
        upstream.aiter_raw(),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        background=BackgroundTask(upstream.aclose),
    )
