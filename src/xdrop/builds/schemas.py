"""Pydantic schemas for CI builds."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TriggerBuildRequest(BaseModel):
    platform: str


class TriggerBuildResponse(BaseModel):
    success: bool = True
    build_id: str
    status: str


class BuildResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    platform: str
    status: str
    github_run_id: int | None = None
    artifact_url: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class BuildListResponse(BaseModel):
    builds: list[BuildResponse]


class StepInfo(BaseModel):
    name: str
    status: str | None = None
    conclusion: str | None = None
    number: int | None = None


class JobInfo(BaseModel):
    name: str
    status: str | None = None
    conclusion: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    steps: list[StepInfo]
    failed_step_log: str | None = None


class BuildLogsResponse(BaseModel):
    success: bool = True
    status: str
    jobs: list[JobInfo]
    run_url: str | None = None
    message: str | None = None
