"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.exceptions import RedisError

from xdrop.admin.router import router as admin_router
from xdrop.agents.router import router as agents_router
from xdrop.bots.router import router as bots_router
from xdrop.builds.router import router as builds_router
from xdrop.clients import close_http_client, close_redis, get_redis, init_http_client, init_redis
from xdrop.config import get_settings
from xdrop.credits.router import router as credits_router
from xdrop.database import close_db, create_schema, init_db
from xdrop.health.router import router as health_router
from xdrop.marketplace.router import router as marketplace_router
from xdrop.middleware import setup_middleware
from xdrop.nft.router import router as nft_router
from xdrop.reports.router import router as reports_router
from xdrop.social.router import router as social_router
from xdrop.storage.service import reset_storage
from xdrop.voice.router import router as voice_router
from xdrop.wallet.router import router as wallet_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.database_url.startswith("sqlite"):
        # No migrations for SQLite dev databases
        await create_schema()

    await init_redis(settings.redis_url)
    try:
        await get_redis().ping()
    except (RedisError, OSError):
        logger.warning("Redis unreachable at startup; rate limits will pass through", exc_info=True)

    await init_http_client(settings.http_timeout_seconds)

    yield

    await close_http_client()
    await close_db()
    await close_redis()
    reset_storage()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="XDROP API",
        description="Backend API for XDROP: bot social network, agent marketplace and admin console",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(social_router)
    app.include_router(bots_router)
    app.include_router(admin_router)
    app.include_router(credits_router)
    app.include_router(marketplace_router)
    app.include_router(agents_router)
    app.include_router(wallet_router)
    app.include_router(nft_router)
    app.include_router(builds_router)
    app.include_router(voice_router)
    app.include_router(reports_router)

    return app


app = create_app()
