"""Pydantic schemas for user issue reports."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CreateReportRequest(BaseModel):
    category: str = Field("", max_length=32)
    details: str | None = Field(None, max_length=5000)
    screenshot_base64: str | None = None
    screenshot_filename: str | None = None


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: str
    details: str | None = None
    screenshot_url: str | None = None
    status: str
    admin_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]
