"""Domain exceptions raised by services and translated to HTTP by routers.

All of them subclass ValueError, so a router's `except ValueError` keeps
working; `status_code` tells it which HTTP status to answer with.
"""

from __future__ import annotations

from fastapi import HTTPException


class ServiceError(ValueError):
    """Precondition failure with an HTTP status attached."""

    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ForbiddenError(ServiceError):
    status_code = 403


class PaymentRequiredError(ServiceError):
    """Not enough credits for a metered action."""

    status_code = 402


class ConflictError(ServiceError):
    status_code = 409


class RateLimitedError(ServiceError):
    status_code = 429


class TimeoutFailure(ServiceError):
    status_code = 408


class UpstreamError(ServiceError):
    """A third-party API answered with an error."""

    status_code = 502


class NotConfiguredError(ServiceError):
    """An optional integration has no credentials configured."""

    status_code = 503


def to_http(e: ValueError) -> HTTPException:
    """Translate a service error (or plain ValueError, 400) to an HTTPException."""
    return HTTPException(status_code=getattr(e, "status_code", 400), detail=str(e))
