"""Agent run endpoint."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.agents import service
from xdrop.agents.schemas import RunAgentRequest, RunAgentResponse
from xdrop.auth.dependencies import get_current_profile
from xdrop.clients import get_http_client
from xdrop.database import get_session
from xdrop.db.models import Profile
from xdrop.errors import to_http

router = APIRouter(prefix="/api/v1/agents", tags=["Agents"])


@router.post("/{agent_id}/run", response_model=RunAgentResponse)
async def run_agent_endpoint(
    agent_id: str,
    body: RunAgentRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Spend credits to run an agent once; nothing is charged if the run fails."""
    try:
        run = await service.run_agent(db, http, profile, agent_id, body)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return RunAgentResponse(output=run.outputs["response"], run_id=run.id, credits=profile.credits)
