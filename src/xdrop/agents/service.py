"""
Metered agent runs.

A run charges the caller's credits, asks the configured chat-completions
model to act as the agent, bumps the agent's run counter and records the
exchange in `agent_runs`. All of it is flushed in the caller's session, so a
failed AI call (which the router does not commit) leaves no charge behind.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.agents.schemas import AgentRunConfig, RunAgentRequest
from xdrop.config import get_settings
from xdrop.credits.service import apply_credit_change
from xdrop.db.models import Agent, AgentPurchase, AgentRun, Profile
from xdrop.errors import (
    ForbiddenError,
    NotConfiguredError,
    NotFoundError,
    PaymentRequiredError,
    UpstreamError,
)
from xdrop.timeutil import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "Hello, what can you do?"
EMPTY_OUTPUT = "No response generated."
DEFAULT_MAX_SPEND = 10


def build_system_prompt(config: AgentRunConfig) -> str:
    """System prompt describing the agent: identity, enabled skills, integrations and guardrails."""
    skills = "\n".join(f"- {s.name}: {s.description}" for s in config.skills if s.enabled)
    integrations = ", ".join(i.name for i in config.integrations if i.connected)
    max_spend = config.guardrails.max_spend_per_run or DEFAULT_MAX_SPEND

    lines = [f'You are "{config.name or "AI Agent"}", an OpenClaw AI agent.']
    if config.description:
        lines.append(f"Description: {config.description}")
    lines += ["", "Your capabilities:", skills or "- General assistant", ""]
    if integrations:
        lines += [f"Connected integrations: {integrations}", ""]
    lines += [
        "Guardrails:",
        f"- Max spend per run: ${max_spend:g}",
        f"- Require approval for actions: {'Yes' if config.guardrails.require_approval else 'No'}",
        "",
        "Execute the user's task efficiently. Provide clear, actionable results.",
    ]
    return "\n".join(lines)


def extract_output(data: Any) -> str:  # noqa: ANN401
    """First choice's message content, or a fixed placeholder."""
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str) and message["content"]:
                return message["content"]
    return EMPTY_OUTPUT


async def _can_run(db: AsyncSession, agent: Agent, user_id: str) -> bool:
    if agent.creator_id == user_id:
        return True
    result = await db.execute(
        select(AgentPurchase.id).where(AgentPurchase.agent_id == agent.id, AgentPurchase.user_id == user_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _complete(http: httpx.AsyncClient, system_prompt: str, prompt: str) -> str:
    settings = get_settings()
    try:
        response = await http.post(
            settings.agent_ai_api_url,
            json={
                "model": settings.agent_ai_model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": settings.agent_ai_max_tokens,
            },
            headers={"Authorization": f"Bearer {settings.agent_ai_api_key}"},
            timeout=settings.agent_ai_timeout_seconds,
        )
    except httpx.HTTPError as e:
        raise UpstreamError("AI service error") from e
    if response.is_error:
        logger.error("AI API error %s: %s", response.status_code, response.text[:500])
        raise UpstreamError("AI service error")
    try:
        return extract_output(response.json())
    except ValueError as e:
        raise UpstreamError("AI service error") from e


async def run_agent(
    db: AsyncSession,
    http: httpx.AsyncClient,
    profile: Profile,
    agent_id: str,
    req: RunAgentRequest,
) -> AgentRun:
    """
    Charge for and execute one run of an agent the caller created or bought.

    Raises:
        NotConfiguredError: No AI API key is set.
        NotFoundError: Unknown agent.
        ForbiddenError: The caller neither created nor purchased the agent.
        PaymentRequiredError: Not enough credits for a run.
        UpstreamError: The AI service failed.
    """
    settings = get_settings()
    if not settings.agent_ai_api_key:
        raise NotConfiguredError("AI service not configured")

    agent = await db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    if not await _can_run(db, agent, profile.id):
        raise ForbiddenError("You do not have access to this agent")

    config = req.config.model_copy(
        update={"name": req.config.name or agent.name, "description": req.config.description or agent.description}
    )
    if (profile.credits or 0) < settings.agent_run_cost:
        raise PaymentRequiredError("Insufficient credits")
    description = f"Agent run: {config.name or agent_id}"
    await apply_credit_change(db, profile, -settings.agent_run_cost, "agent_run", description)

    started_at = utcnow()
    prompt = (req.prompt or "").strip() or DEFAULT_PROMPT
    output = await _complete(http, build_system_prompt(config), prompt)

    run = AgentRun(
        agent_id=agent.id,
        user_id=profile.id,
        status="completed",
        inputs={"prompt": req.prompt},
        outputs={"response": output},
        started_at=started_at,
        completed_at=utcnow(),
    )
    db.add(run)
    agent.total_runs = (agent.total_runs or 0) + 1
    await db.flush()
    logger.info("Agent %s run by %s (%d credits)", agent.id, profile.id, settings.agent_run_cost)
    return run
