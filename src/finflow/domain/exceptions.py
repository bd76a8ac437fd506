"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.  LLM provider
failures additionally carry an :class:`ErrorKind` tag; retry policy and the
HTTP boundary match on the tag rather than on ``isinstance`` chains.
"""

from __future__ import annotations

from typing import Sequence

from finflow.domain.enums import ErrorKind


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


# ── LLM providers ────────────────────────────────────────────
class LLMProviderError(DomainError):
    """A single provider failed to produce a response.

    Attributes:
        provider:    Name of the provider that failed.
        code:        Symbolic tag (``TIMEOUT``, ``SERVER_ERROR``, ...).
        status_code: Raw HTTP status, when the transport reported one.
        kind:        Classification used by the retry policy.
    """

    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(
        self,
        message: str,
        provider: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, code=code or "PROVIDER_ERROR")
        self.provider = provider
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(provider={self.provider!r}, code={self.code!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )


class LLMTimeoutError(LLMProviderError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, provider: str, timeout_s: float) -> None:
        super().__init__(
            f"Request timed out after {timeout_s:g}s: {message}",
            provider,
            code="TIMEOUT",
        )
        self.timeout_s = timeout_s


class LLMQuotaExceededError(LLMProviderError):
    kind = ErrorKind.QUOTA

    def __init__(
        self,
        message: str,
        provider: str,
        *,
        retry_after_s: float | None = None,
        status_code: int = 429,
    ) -> None:
        super().__init__(
            message, provider, code="QUOTA_EXCEEDED", status_code=status_code
        )
        self.retry_after_s = retry_after_s


class LLMAuthenticationError(LLMProviderError):
    kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str, provider: str, *, status_code: int = 401) -> None:
        super().__init__(
            message, provider, code="AUTHENTICATION_FAILED", status_code=status_code
        )


class LLMInvalidResponseError(LLMProviderError):
    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message, provider, code="INVALID_RESPONSE")


class AllProvidersFailedError(DomainError):
    """Every provider in the fallback chain exhausted its attempts.

    ``errors`` holds one terminal error per attempted provider, in the
    order the providers were tried.
    """

    def __init__(self, errors: Sequence[LLMProviderError]) -> None:
        self.errors: list[LLMProviderError] = list(errors)
        summary = ", ".join(f"{e.provider}: {e.message}" for e in self.errors)
        super().__init__(
            f"All LLM providers failed: {summary}", code="ALL_PROVIDERS_FAILED"
        )

    @property
    def providers(self) -> list[str]:
        return [e.provider for e in self.errors]
