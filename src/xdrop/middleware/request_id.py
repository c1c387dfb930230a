"""Request ID middleware: propagates a safe X-Request-Id and tags log lines with the caller."""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from xdrop.auth.api_keys import lookup_prefix
from xdrop.auth.dependencies import presented_bot_key

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 64
# Ids end up in JSON logs and response headers; anything else is replaced
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:-]{1,%d}" % MAX_REQUEST_ID_LENGTH)

# Health checks would drown the access log
_QUIET_PATHS = frozenset({"/health", "/ready"})


def resolve_request_id(incoming: str | None) -> str:
    """Keep a caller-supplied id when it is short and plain, otherwise mint a UUID."""
    if incoming and _REQUEST_ID_RE.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


def caller_tag(request: Request) -> str:
    """`bot:<key prefix>`, `user` (bearer JWT) or `anonymous`. Never verifies anything."""
    bot_key = presented_bot_key(request)
    if bot_key:
        return f"bot:{lookup_prefix(bot_key)}"
    if request.headers.get("authorization", "").startswith("Bearer "):
        return "user"
    return "anonymous"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind request id, method, path, client ip and caller to every log line of the request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
            caller=caller_tag(request),
        )

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
