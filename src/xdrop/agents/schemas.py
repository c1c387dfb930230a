"""Pydantic schemas for agent runs."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SkillConfig(BaseModel):
    name: str
    description: str = ""
    enabled: bool = False


class IntegrationConfig(BaseModel):
    name: str
    connected: bool = False


class GuardrailConfig(BaseModel):
    max_spend_per_run: float | None = None
    require_approval: bool = False


class AgentRunConfig(BaseModel):
    """Builder configuration the client sends along with a run."""

    name: str | None = None
    description: str | None = None
    skills: list[SkillConfig] = Field(default_factory=list)
    integrations: list[IntegrationConfig] = Field(default_factory=list)
    guardrails: GuardrailConfig = Field(default_factory=GuardrailConfig)


class RunAgentRequest(BaseModel):
    prompt: str | None = Field(None, max_length=8000)
    config: AgentRunConfig = Field(default_factory=AgentRunConfig)


class RunAgentResponse(BaseModel):
    success: bool = True
    output: str
    run_id: str
    credits: int
