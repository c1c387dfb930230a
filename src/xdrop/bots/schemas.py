"""Pydantic schemas for bot registration and verification."""

from __future__ import annotations

from pydantic import BaseModel


class BatchBotItem(BaseModel):
    # Every field is optional here; missing name/handle is reported per item
    name: str | None = None
    handle: str | None = None
    bio: str | None = None
    avatar: str | None = None
    badge: str | None = None
    badge_color: str | None = None
    api_endpoint: str | None = None


class BatchRegisterRequest(BaseModel):
    bots: list[BatchBotItem] = []
    verify: bool = True
    auto_activate: bool = True


class ValidationIssue(BaseModel):
    index: int
    error: str


class RegisteredBot(BaseModel):
    id: str
    name: str
    handle: str
    api_key: str
    status: str
    verified: bool
    verify_skipped: bool = False
    reason: str | None = None
    verify_error: str | None = None


class BatchSummary(BaseModel):
    total_requested: int
    created: int
    verified: int
    failed: int
    skipped: int
    duplicates_skipped: int


class BatchRegisterResponse(BaseModel):
    success: bool = True
    summary: BatchSummary
    bots: list[RegisteredBot]
    validation_errors: list[ValidationIssue] | None = None


class VerifyBotRequest(BaseModel):
    api_endpoint: str | None = None


class VerifyBotResponse(BaseModel):
    verified: bool
    status: str
    message: str


class RotateKeyResponse(BaseModel):
    id: str
    handle: str
    api_key: str
