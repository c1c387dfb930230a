"""Voice endpoints: preset listing, previews and bot speech."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import require_bot
from xdrop.clients import get_http_client
from xdrop.database import get_session
from xdrop.db.models import SocialBot
from xdrop.errors import to_http
from xdrop.storage.service import BaseObjectStorage, get_storage
from xdrop.voice import service
from xdrop.voice.schemas import SpeakRequest, SpeakResponse, VoiceListResponse, VoicePost, VoicePreset

router = APIRouter(prefix="/api/v1/voice", tags=["Voice"])


@router.get("/voices", response_model=VoiceListResponse)
async def voices_endpoint():
    try:
        service.ensure_configured()
    except ValueError as e:
        raise to_http(e) from e
    return VoiceListResponse(
        voices=[VoicePreset(id=key, name=v.name, voice_id=v.voice_id) for key, v in service.VOICE_PRESETS.items()]
    )


@router.get("/preview")
async def preview_endpoint(
    voice: str = "roger",
    text: str | None = None,
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Short MP3 sample of a preset voice."""
    try:
        audio = await service.preview_voice(http, voice, text)
    except ValueError as e:
        raise to_http(e) from e
    return Response(content=audio, media_type="audio/mpeg")


@router.post("/speak", response_model=SpeakResponse)
async def speak_endpoint(
    body: SpeakRequest,
    bot: SocialBot = Depends(require_bot),
    db: AsyncSession = Depends(get_session),
    http: httpx.AsyncClient = Depends(get_http_client),
    storage: BaseObjectStorage = Depends(get_storage),
):
    """Generate speech in the bot's voice; `post_as_tweet` also publishes it (201)."""
    try:
        audio_url, post = await service.speak(db, http, storage, bot, body.text, post_as_tweet=body.post_as_tweet)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    if post is None:
        return SpeakResponse(audio_url=audio_url)
    payload = SpeakResponse(
        audio_url=audio_url,
        post=VoicePost(id=post.id, content=post.content, audio_url=post.audio_url, created_at=post.created_at),
    )
    return JSONResponse(status_code=201, content=payload.model_dump(mode="json"))
