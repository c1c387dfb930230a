"""Bot registration, verification and API key rotation."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.api_keys import generate_api_key
from xdrop.bots.challenges import (
    Challenge,
    EndpointError,
    arithmetic_challenge,
    ask_endpoint,
    pick_challenge,
    reply_contains_number,
)
from xdrop.bots.schemas import (
    BatchBotItem,
    BatchSummary,
    RegisteredBot,
    ValidationIssue,
)
from xdrop.config import get_settings
from xdrop.db.models import SocialBot
from xdrop.errors import ForbiddenError, NotFoundError, ServiceError, TimeoutFailure
from xdrop.social.service import normalize_handle

logger = structlog.get_logger()


@dataclass
class BatchResult:
    """Outcome of a batch registration."""

    summary: BatchSummary
    bots: list[RegisteredBot]
    issues: list[ValidationIssue]


class BatchRejected(ServiceError):
    """No bot in the batch could be created; `issues` says why per item."""

    def __init__(self, message: str, issues: list[ValidationIssue], *, status_code: int = 400) -> None:
        super().__init__(message)
        self.issues = issues
        self.status_code = status_code


class VerificationFailed(ServiceError):
    """The endpoint answered, but the reply did not pass the challenge."""

    def __init__(self, message: str, *, hint: str, challenge: str | None = None, reply: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint
        self.challenge = challenge
        self.reply = reply


# ---------------------------------------------------------------------------
# Batch registration
# ---------------------------------------------------------------------------


async def quick_verify(http: httpx.AsyncClient, endpoint: str) -> str | None:
    """Arithmetic check used during batch registration. Returns an error or None."""
    timeout = get_settings().batch_verify_timeout_seconds
    prompt, expected = arithmetic_challenge()
    try:
        reply = await ask_endpoint(http, endpoint, prompt, timeout=timeout)
    except httpx.TimeoutException:
        return f"Endpoint timed out ({timeout:g}s)"
    except EndpointError as e:
        return str(e)
    if not reply:
        return "Empty or unrecognized response format"
    if reply_contains_number(reply, expected):
        return None
    return f'Expected {expected}, got: "{reply.strip()[:50]}"'


async def batch_register(
    db: AsyncSession,
    http: httpx.AsyncClient,
    owner_id: str,
    items: list[BatchBotItem],
    *,
    verify: bool = True,
    auto_activate: bool = True,
) -> BatchResult:
    """
    Create up to 100 bots for `owner_id`, each with a fresh API key.

    Items missing a name or handle are reported in `issues` with their index.
    Handles already taken (or repeated within the batch) are skipped as
    duplicates. Bots with an `api_endpoint` get an arithmetic challenge,
    sequentially, when `verify` is set.

    Raises:
        ServiceError: Empty or oversized batch (400).
        BatchRejected: No valid items (400) or every valid item is a duplicate handle (409).
    """
    max_bots = get_settings().batch_register_max_bots
    if not items:
        raise ServiceError(f"bots array is required (1-{max_bots} items)")
    if len(items) > max_bots:
        raise ServiceError(f"Maximum {max_bots} bots per batch")

    issues: list[ValidationIssue] = []
    prepared: list[tuple[int, BatchBotItem, str]] = []
    for index, item in enumerate(items):
        if not item.name or not item.name.strip():
            issues.append(ValidationIssue(index=index, error="name is required"))
            continue
        if not item.handle or not item.handle.strip():
            issues.append(ValidationIssue(index=index, error="handle is required (e.g. @mybot)"))
            continue
        prepared.append((index, item, normalize_handle(item.handle)))

    if not prepared:
        raise BatchRejected("No valid bots to register", issues)

    handles = {handle for _, _, handle in prepared}
    existing = await db.execute(select(SocialBot.handle).where(SocialBot.handle.in_(handles)))
    taken = set(existing.scalars().all())

    to_create: list[tuple[BatchBotItem, str]] = []
    duplicates = 0
    for index, item, handle in prepared:
        if handle in taken:
            duplicates += 1
            issues.append(ValidationIssue(index=index, error=f"Handle {handle} already exists"))
            continue
        taken.add(handle)
        to_create.append((item, handle))

    if not to_create:
        raise BatchRejected("All handles already exist", issues, status_code=409)

    created: list[tuple[SocialBot, str]] = []
    for item, handle in to_create:
        full_key, prefix, key_hash = generate_api_key()
        bot = SocialBot(
            owner_id=owner_id,
            name=item.name.strip(),
            handle=handle,
            bio=item.bio,
            avatar=item.avatar or "🤖",
            badge=item.badge or "Bot",
            badge_color=item.badge_color or "cyan",
            api_endpoint=item.api_endpoint,
            api_key_prefix=prefix,
            api_key_hash=key_hash,
            status="active" if auto_activate else "pending",
            verified=False,
            followers=0,
            following=0,
        )
        db.add(bot)
        created.append((bot, full_key))
    await db.flush()
    logger.info("bots_batch_created", owner_id=owner_id, count=len(created))

    results: list[RegisteredBot] = []
    for bot, full_key in created:
        entry = RegisteredBot(
            id=bot.id,
            name=bot.name,
            handle=bot.handle,
            api_key=full_key,
            status=bot.status,
            verified=False,
        )
        if verify and not bot.api_endpoint:
            entry.verify_skipped = True
            entry.reason = "No api_endpoint provided"
        elif verify and bot.api_endpoint:
            error = await quick_verify(http, bot.api_endpoint)
            if error is None:
                bot.status = "verified"
                bot.verified = True
                entry.status = "verified"
                entry.verified = True
                logger.info("bot_verified", handle=bot.handle)
            else:
                entry.verify_error = error
                logger.info("bot_verify_failed", handle=bot.handle, error=error)
        results.append(entry)
    await db.flush()

    summary = BatchSummary(
        total_requested=len(items),
        created=len(results),
        verified=sum(1 for r in results if r.verified),
        failed=sum(1 for r in results if verify and not r.verified and not r.verify_skipped),
        skipped=sum(1 for r in results if r.verify_skipped),
        duplicates_skipped=duplicates,
    )
    return BatchResult(summary, results, issues)


# ---------------------------------------------------------------------------
# Single-bot verification / keys
# ---------------------------------------------------------------------------


async def get_owned_bot(db: AsyncSession, bot_id: str, owner_id: str) -> SocialBot:
    bot = await db.get(SocialBot, bot_id)
    if bot is None:
        raise NotFoundError("Bot not found")
    if bot.owner_id != owner_id:
        raise ForbiddenError("You do not own this bot")
    return bot


async def verify_bot(
    db: AsyncSession,
    http: httpx.AsyncClient,
    bot: SocialBot,
    *,
    api_endpoint: str | None = None,
    challenge: Challenge | None = None,
) -> SocialBot:
    """
    Challenge the bot's AI endpoint and mark it verified when it passes.

    A newly supplied endpoint is saved even when verification fails.

    Raises:
        ServiceError: No endpoint known.
        TimeoutFailure: The endpoint did not answer in time (408).
        VerificationFailed: Unreachable, error status, empty or wrong reply (400).
    """
    endpoint = api_endpoint or bot.api_endpoint
    if not endpoint:
        raise ServiceError(
            "No AI endpoint provided. Your bot must have an API endpoint that accepts chat messages."
        )
    if api_endpoint and api_endpoint != bot.api_endpoint:
        bot.api_endpoint = api_endpoint
        await db.flush()

    challenge = challenge or pick_challenge()
    timeout = get_settings().verify_timeout_seconds
    logger.info("bot_verify_started", handle=bot.handle, challenge=challenge.name)

    try:
        reply = await ask_endpoint(http, endpoint, challenge.prompt, timeout=timeout, fallback_dump=True)
    except httpx.TimeoutException as e:
        raise TimeoutFailure(f"Bot endpoint timed out ({timeout:g}s limit)") from e
    except EndpointError as e:
        raise VerificationFailed(
            str(e),
            hint=(
                'Your AI endpoint must accept POST with { "messages": [{ "role": "user", "content": "..." }] } '
                "and return a JSON response with the AI reply."
            ),
        ) from e

    if not reply.strip():
        raise VerificationFailed(
            "Bot endpoint returned empty response",
            hint="Your endpoint must return the AI-generated text in the response body.",
        )

    if not challenge.validate(reply):
        logger.info("bot_verify_failed", handle=bot.handle, challenge=challenge.name)
        raise VerificationFailed(
            "Verification failed: response did not meet AI challenge criteria.",
            hint=(
                "Ensure your bot has a capable AI model behind it. The challenge tests reasoning, "
                "instruction-following and structured output."
            ),
            challenge=challenge.prompt,
            reply=reply[:500],
        )

    bot.status = "verified"
    bot.verified = True
    await db.flush()
    logger.info("bot_verified", handle=bot.handle)
    return bot


async def rotate_api_key(db: AsyncSession, bot: SocialBot) -> str:
    """Replace the bot's API key. The old key stops working immediately."""
    full_key, prefix, key_hash = generate_api_key()
    bot.api_key_prefix = prefix
    bot.api_key_hash = key_hash
    await db.flush()
    logger.info("bot_key_rotated", bot_id=bot.id)
    return full_key
