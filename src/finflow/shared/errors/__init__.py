"""Boundary mapping from domain errors to HTTP status codes and payloads.

Route handlers are not part of this package; whichever web layer hosts the
extraction flows calls :func:`problem_details_for` and serialises the result.
"""

from __future__ import annotations

from typing import Any, assert_never

import structlog

from finflow.domain.enums import ErrorKind
from finflow.domain.exceptions import (
    AllProvidersFailedError,
    DomainError,
    LLMProviderError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def _status_for_kind(kind: ErrorKind) -> int:
    match kind:
        case ErrorKind.TIMEOUT:
            return 504
        case ErrorKind.QUOTA:
            return 429
        case ErrorKind.AUTHENTICATION:
            return 401
        case ErrorKind.INVALID_RESPONSE | ErrorKind.PROVIDER:
            return 502
        case _:
            assert_never(kind)


def status_code_for(exc: BaseException) -> int:
    """HTTP status an outer layer should answer with for ``exc``."""
    if isinstance(exc, LLMProviderError):
        return _status_for_kind(exc.kind)
    if isinstance(exc, AllProvidersFailedError):
        return 503
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, DomainError):
        return 400
    return 500


def problem_details_for(
    exc: BaseException, instance: str | None = None
) -> dict[str, Any]:
    """Render ``exc`` as an RFC 7807 problem document.

    Unexpected exceptions are logged and reported with a generic detail so
    internals never reach the client.
    """
    status = status_code_for(exc)

    if isinstance(exc, DomainError):
        body: dict[str, Any] = {
            "type": "about:blank",
            "title": _TITLES.get(status, "Error"),
            "status": status,
            "detail": exc.message,
            "code": exc.code,
        }
    else:
        logger.error("unhandled_exception", error=str(exc), exc_info=exc)
        body = {
            "type": "about:blank",
            "title": _TITLES[500],
            "status": 500,
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }

    if isinstance(exc, LLMProviderError):
        body["provider"] = exc.provider
        retry_after_s = getattr(exc, "retry_after_s", None)
        if retry_after_s is not None:
            body["retry_after_s"] = retry_after_s
    elif isinstance(exc, AllProvidersFailedError):
        body["errors"] = [
            {"provider": e.provider, "code": e.code, "detail": e.message}
            for e in exc.errors
        ]

    if instance is not None:
        body["instance"] = instance
    return body


__all__ = ["problem_details_for", "status_code_for"]
