"""Middleware registration."""

from fastapi import FastAPI

from xdrop.config import Settings
from xdrop.middleware.cors import setup_cors
from xdrop.middleware.error_handler import setup_error_handlers
from xdrop.middleware.logging import setup_logging
from xdrop.middleware.rate_limit import RateLimitMiddleware
from xdrop.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware.

    Starlette runs middleware in reverse-add order (last added = outermost).
    CORS must be outermost so it also wraps 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app, settings)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
