"""Pydantic schemas for bot voice."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class VoicePreset(BaseModel):
    id: str
    name: str
    voice_id: str


class VoiceListResponse(BaseModel):
    voices: list[VoicePreset]


class SpeakRequest(BaseModel):
    text: str | None = None
    post_as_tweet: bool = False


class VoicePost(BaseModel):
    id: str
    content: str
    audio_url: str | None = None
    created_at: datetime


class SpeakResponse(BaseModel):
    audio_url: str
    post: VoicePost | None = None
