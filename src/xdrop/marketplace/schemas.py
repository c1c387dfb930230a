"""Pydantic schemas for marketplace purchases and trials."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TemplateRequest(BaseModel):
    template_id: str = Field(..., min_length=1, max_length=64)
    template_name: str = Field(..., min_length=1, max_length=120)
    template_description: str | None = None
    template_avatar: str | None = None
    template_category: str | None = None
    monthly_return_min: float = 0.0
    monthly_return_max: float = 0.0


class PurchaseRequest(TemplateRequest):
    price: float | None = Field(None, gt=0)


class AgentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    creator_id: str
    name: str
    description: str | None = None
    short_description: str | None = None
    avatar: str
    category: str | None = None
    template_id: str | None = None
    price: float
    status: str
    is_trial: bool
    trial_earnings_locked: float
    monthly_return_min: float
    monthly_return_max: float
    purchased_at: datetime | None = None
    created_at: datetime


class PurchaseResponse(BaseModel):
    success: bool = True
    agent: AgentResponse
    new_balance: float


class TrialInfo(BaseModel):
    expires_at: datetime
    days_remaining: int


class TrialResponse(BaseModel):
    success: bool = True
    agent: AgentResponse
    trial: TrialInfo
