"""Shared plumbing for HTTP-backed LLM providers.

Subclasses supply the vendor specifics (endpoint, headers, payload,
response parsing).  This base class owns the httpx client, races every
request against its timeout, and translates transport and HTTP failures
into the ``LLMProviderError`` family so nothing vendor-specific leaks out.
"""

from __future__ import annotations

import asyncio
import time
from abc import abstractmethod
from typing import Any, Sequence

import httpx
import structlog

from finflow.domain.exceptions import (
    LLMAuthenticationError,
    LLMInvalidResponseError,
    LLMProviderError,
    LLMQuotaExceededError,
    LLMTimeoutError,
)
from finflow.ports.outbound import LLMProvider
from finflow.shared.llm.types import (
    CallOptions,
    Conversation,
    LLMResponse,
    Message,
    ResponseMetadata,
    as_conversation,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_S = 30.0
HEALTH_CHECK_TIMEOUT_S = 5.0


class BaseHTTPProvider(LLMProvider):
    """Template for providers reached over a JSON HTTP API."""

    # Lower-cased substrings that classify an error message when the
    # status code alone is ambiguous (e.g. Gemini reports bad keys as 400).
    QUOTA_MARKERS: tuple[str, ...] = ("quota", "rate limit", "resource_exhausted")
    AUTH_MARKERS: tuple[str, ...] = ("unauthorized", "api key not valid", "invalid api key")

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    # ── Vendor hooks ─────────────────────────────────────────
    @abstractmethod
    def _endpoint(self, options: CallOptions) -> str: ...

    @abstractmethod
    def _headers(self) -> dict[str, str]: ...

    @abstractmethod
    def _build_payload(
        self, conversation: Conversation, options: CallOptions
    ) -> dict[str, Any]: ...

    @abstractmethod
    def _parse_body(
        self, data: Any, payload: dict[str, Any], options: CallOptions
    ) -> tuple[str, str | None, int | None]:
        """Return ``(content, model, total_tokens)`` or raise."""

    # ── LLMProvider ──────────────────────────────────────────
    async def call(
        self, messages: Sequence[Message], options: CallOptions | None = None
    ) -> LLMResponse:
        options = options or CallOptions()
        timeout_s = options.timeout_s or DEFAULT_TIMEOUT_S
        conversation = as_conversation(messages)

        if not self._api_key:
            raise LLMAuthenticationError(
                f"{self.name} API key is not configured", self.name
            )

        start = time.monotonic()
        try:
            content, model, tokens = await asyncio.wait_for(
                self._send(conversation, options, timeout_s),
                timeout=timeout_s,
            )
        except LLMProviderError:
            raise
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise LLMTimeoutError("Request timed out", self.name, timeout_s) from exc
        except httpx.RequestError as exc:
            raise LLMProviderError(
                f"{self.name} network error: {exc}", self.name, code="NETWORK_ERROR"
            ) from exc
        except Exception as exc:
            raise LLMProviderError(
                f"Unknown {self.name} error: {type(exc).__name__}: {exc}",
                self.name,
                code="UNKNOWN_ERROR",
            ) from exc

        return LLMResponse(
            content=content,
            metadata=ResponseMetadata(
                provider=self.name,
                model=model,
                tokens=tokens,
                duration_s=time.monotonic() - start,
            ),
        )

    async def is_healthy(self) -> bool:
        try:
            await self.call(
                [Message.user("Hello")],
                CallOptions(timeout_s=HEALTH_CHECK_TIMEOUT_S),
            )
        except LLMProviderError as exc:
            logger.warning(
                "llm_provider_health_check_failed",
                provider=self.name,
                code=exc.code,
                error=exc.message,
            )
            return False
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Request / response ───────────────────────────────────
    async def _send(
        self, conversation: Conversation, options: CallOptions, timeout_s: float
    ) -> tuple[str, str | None, int | None]:
        payload = self._build_payload(conversation, options)
        response = await self._client.post(
            self._endpoint(options),
            headers=self._headers(),
            json=payload,
            timeout=timeout_s,
        )
        if response.is_error:
            raise self._translate_error(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMInvalidResponseError(
                f"Malformed JSON body from {self.name}", self.name
            ) from exc
        if not data:
            raise LLMInvalidResponseError(f"Empty body from {self.name}", self.name)
        return self._parse_body(data, payload, options)

    def _translate_error(self, response: httpx.Response) -> LLMProviderError:
        status = response.status_code
        message = _error_message(response)
        lowered = message.lower()

        if status in (401, 403) or any(m in lowered for m in self.AUTH_MARKERS):
            return LLMAuthenticationError(
                f"{self.name} authentication failed: {message}",
                self.name,
                status_code=status,
            )
        if status == 429 or any(m in lowered for m in self.QUOTA_MARKERS):
            return LLMQuotaExceededError(
                f"{self.name} rate limit exceeded: {message}",
                self.name,
                retry_after_s=_retry_after(response),
                status_code=status,
            )
        if status == 400:
            return LLMProviderError(
                f"{self.name} bad request: {message}",
                self.name,
                code="BAD_REQUEST",
                status_code=status,
            )
        if status >= 500:
            return LLMProviderError(
                f"{self.name} server error: {message}",
                self.name,
                code="SERVER_ERROR",
                status_code=status,
            )
        return LLMProviderError(
            f"{self.name} error: {message}",
            self.name,
            code="UNKNOWN_ERROR",
            status_code=status,
        )


def _error_message(response: httpx.Response) -> str:
    fallback = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return fallback


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        # HTTP-date form is ignored.
        return None
