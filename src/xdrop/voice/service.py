"""
Text-to-speech for bots via ElevenLabs.

Presets map a short key (`roger`, `sarah`, ...) to an ElevenLabs voice id.
A bot's `voice_id` may be either a preset key or a raw upstream id.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.models import SocialBot, SocialPost
from xdrop.errors import NotConfiguredError, ServiceError, UpstreamError
from xdrop.storage.service import BaseObjectStorage, StorageError
from xdrop.timeutil import utcnow

logger = structlog.get_logger()

PREVIEW_MAX_CHARS = 200
SPEAK_MIN_CHARS = 2
SPEAK_MAX_CHARS = 2000
TWEET_MAX_CHARS = 280
SPEAKER_PREFIX = "🔊 "
OUTPUT_FORMAT = "mp3_44100_128"
SPEAK_VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75, "style": 0.3}


@dataclass(frozen=True)
class Voice:
    name: str
    voice_id: str


VOICE_PRESETS: dict[str, Voice] = {
    "roger": Voice("Roger", "CwhRBWXzGAHq8TQ4Fs17"),
    "sarah": Voice("Sarah", "EXAVITQu4vr4xnSDxMaL"),
    "charlie": Voice("Charlie", "IKne3meq5aSn9XLyUdCD"),
    "george": Voice("George", "JBFqnCBsd6RMkjVDRZzb"),
    "callum": Voice("Callum", "N2lVS1w4EtoT3dr4eOWO"),
    "river": Voice("River", "SAz9YHcvj6GT2YYXdXww"),
    "liam": Voice("Liam", "TX3LPaxmHKxFdv7VOQHJ"),
    "alice": Voice("Alice", "Xb7hH8MSUJpSbSDYk0k2"),
    "matilda": Voice("Matilda", "XrExE9yKIg1WjnnlVkGX"),
    "jessica": Voice("Jessica", "cgSgspJ2msm6clMCkdW9"),
    "eric": Voice("Eric", "cjVigY5qzO86Huf0OWal"),
    "chris": Voice("Chris", "iP95p4xoKVk53GoZ742B"),
    "brian": Voice("Brian", "nPczCjzI2devNBz1zQrb"),
    "daniel": Voice("Daniel", "onwK4e9ZLuTAKqWW03F9"),
    "lily": Voice("Lily", "pFZP5JQG7iQjIQuC4Bku"),
}


def ensure_configured() -> None:
    if not get_settings().elevenlabs_api_key:
        raise NotConfiguredError("ElevenLabs not configured")


def resolve_voice_id(voice: str) -> str:
    """Preset key -> upstream id; anything else is assumed to be an upstream id."""
    preset = VOICE_PRESETS.get(voice)
    return preset.voice_id if preset else voice


def tweet_content(text: str) -> str:
    """Speaker-prefixed post body, truncated with an ellipsis past 280 chars."""
    body = text if len(text) <= TWEET_MAX_CHARS else text[: TWEET_MAX_CHARS - 3] + "..."
    return f"{SPEAKER_PREFIX}{body}"


async def synthesize(
    http: httpx.AsyncClient, voice_id: str, text: str, *, model_id: str, voice_settings: dict | None = None
) -> bytes:
    """Call the ElevenLabs TTS endpoint and return MP3 bytes."""
    settings = get_settings()
    payload: dict = {"text": text, "model_id": model_id}
    if voice_settings:
        payload["voice_settings"] = voice_settings
    try:
        response = await http.post(
            f"{settings.elevenlabs_api_url.rstrip('/')}/v1/text-to-speech/{voice_id}",
            params={"output_format": OUTPUT_FORMAT},
            json=payload,
            headers={"xi-api-key": settings.elevenlabs_api_key},
            timeout=settings.http_timeout_seconds,
        )
    except httpx.HTTPError as e:
        raise UpstreamError(f"TTS failed: {e}") from e
    if response.is_error:
        logger.warning("tts_failed", status=response.status_code, body=response.text[:200])
        raise UpstreamError(f"TTS failed: {response.text}")
    return response.content


async def preview_voice(http: httpx.AsyncClient, voice: str, text: str | None) -> bytes:
    ensure_configured()
    preset = VOICE_PRESETS.get(voice)
    if preset is None:
        raise ServiceError("Unknown voice. Use GET /api/v1/voice/voices to list.")
    sample = text or f"Hi, I'm {preset.name}. This is how I sound!"
    return await synthesize(
        http, preset.voice_id, sample[:PREVIEW_MAX_CHARS], model_id=get_settings().elevenlabs_preview_model
    )


async def speak(
    db: AsyncSession,
    http: httpx.AsyncClient,
    storage: BaseObjectStorage,
    bot: SocialBot,
    text: str | None,
    *,
    post_as_tweet: bool = False,
) -> tuple[str, SocialPost | None]:
    """Render `text` in the bot's voice, store it, optionally post it.

    Returns the public audio URL and the created post (if any).
    """
    ensure_configured()
    settings = get_settings()
    if not bot.voice_enabled or not bot.voice_id:
        raise ServiceError("Voice not configured for this bot. Set voice_id and voice_enabled via the builder.")
    if text is None or len(text.strip()) < SPEAK_MIN_CHARS:
        raise ServiceError(f"text is required (min {SPEAK_MIN_CHARS} chars)")
    if len(text) > SPEAK_MAX_CHARS:
        raise ServiceError(f"text must be {SPEAK_MAX_CHARS} chars or less")

    audio = await synthesize(
        http,
        resolve_voice_id(bot.voice_id),
        text.strip(),
        model_id=settings.elevenlabs_speak_model,
        voice_settings=SPEAK_VOICE_SETTINGS,
    )

    key = f"{bot.id}/{int(utcnow().timestamp() * 1000)}.mp3"
    try:
        audio_url = await storage.upload(settings.bucket_voice_audio, key, audio, "audio/mpeg")
    except StorageError as e:
        raise UpstreamError("Failed to store audio") from e
    logger.info("voice_generated", bot_id=bot.id, bytes=len(audio), key=key)

    if not post_as_tweet:
        return audio_url, None

    post = SocialPost(bot_id=bot.id, content=tweet_content(text), audio_url=audio_url, likes=0, reposts=0, replies=0)
    db.add(post)
    await db.flush()
    return audio_url, post
