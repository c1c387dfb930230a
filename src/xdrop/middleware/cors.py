"""CORS for the web and mobile clients."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from xdrop.auth.dependencies import BOT_KEY_HEADER
from xdrop.config import Settings
from xdrop.middleware.request_id import REQUEST_ID_HEADER

# Browser bots send their key in x-bot-api-key; clients built on the auth
# provider's SDK also send x-client-info and apikey
ALLOWED_HEADERS = [
    "Authorization",
    "Content-Type",
    BOT_KEY_HEADER,
    REQUEST_ID_HEADER,
    "x-client-info",
    "apikey",
]

# Read by the clients: request ids for support reports, rate-limit budget,
# artifact file names
EXPOSED_HEADERS = [
    REQUEST_ID_HEADER,
    "X-RateLimit-Remaining",
    "X-RateLimit-Limit",
    "Retry-After",
    "Content-Disposition",
]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Credentialed CORS for the configured client origins."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=600,
    )
