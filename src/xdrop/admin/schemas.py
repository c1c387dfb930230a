"""Pydantic request schemas for admin endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SetRoleRequest(BaseModel):
    role: str = Field(..., description="admin | moderator | user | remove")


class CreditTopUpRequest(BaseModel):
    amount: int = Field(..., gt=0)
    description: str | None = Field(None, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: str


class ReportUpdateRequest(BaseModel):
    status: str | None = None
    admin_notes: str | None = Field(None, max_length=2000)


class SaveSettingsRequest(BaseModel):
    settings: dict[str, Any]
