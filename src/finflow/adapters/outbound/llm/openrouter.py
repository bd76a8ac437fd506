"""Fallback provider: OpenRouter's OpenAI-compatible chat completions.

OpenRouter accepts an ordered ``models`` list and routes to the first one
that is available.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from finflow.adapters.outbound.llm.base import BaseHTTPProvider
from finflow.domain.exceptions import (
    LLMInvalidResponseError,
    LLMProviderError,
    LLMQuotaExceededError,
)
from finflow.shared.llm.types import CallOptions, Conversation

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODELS: tuple[str, ...] = (
    "google/gemma-2-9b-it:free",
    "meta-llama/llama-3.1-8b-instruct:free",
)
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000


def build_openrouter_request(
    conversation: Conversation,
    options: CallOptions,
    default_models: Sequence[str] = OPENROUTER_DEFAULT_MODELS,
) -> dict[str, Any]:
    return {
        "models": list(options.models or default_models),
        "messages": [{"role": m.role.value, "content": m.content} for m in conversation],
        "temperature": (
            options.temperature if options.temperature is not None else DEFAULT_TEMPERATURE
        ),
        "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
    }


class OpenRouterProvider(BaseHTTPProvider):
    """Cheaper, more available fallback backend."""

    def __init__(
        self,
        api_key: str,
        *,
        models: Sequence[str] = OPENROUTER_DEFAULT_MODELS,
        base_url: str = OPENROUTER_BASE_URL,
        app_url: str = "http://localhost:3000",
        app_title: str = "Finance Bot API",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key=api_key, base_url=base_url, client=client)
        self._models = tuple(models)
        self._app_url = app_url
        self._app_title = app_title

    @property
    def name(self) -> str:
        return "openrouter"

    def _endpoint(self, options: CallOptions) -> str:
        return f"{self._base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._app_url,
            "X-Title": self._app_title,
        }

    def _build_payload(
        self, conversation: Conversation, options: CallOptions
    ) -> dict[str, Any]:
        return build_openrouter_request(conversation, options, self._models)

    def _parse_body(
        self, data: Any, payload: dict[str, Any], options: CallOptions
    ) -> tuple[str, str | None, int | None]:
        if not isinstance(data, dict):
            raise LLMInvalidResponseError("Unexpected body from OpenRouter", self.name)

        # Upstream model failures can arrive as 200 with an error object.
        error = data.get("error")
        if isinstance(error, dict) and not data.get("choices"):
            code = error.get("code")
            detail = error.get("message", "unknown")
            if code == 429:
                raise LLMQuotaExceededError(
                    f"OpenRouter rate limit exceeded: {detail}", self.name
                )
            raise LLMProviderError(
                f"OpenRouter upstream error: {detail}",
                self.name,
                code="UPSTREAM_ERROR",
                status_code=code if isinstance(code, int) else None,
            )

        choices = data.get("choices")
        if not choices:
            raise LLMInvalidResponseError("No choices returned from OpenRouter", self.name)

        first = choices[0] if isinstance(choices, list) else None
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise LLMInvalidResponseError("Invalid message format from OpenRouter", self.name)

        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        return (
            content,
            data.get("model") or payload["models"][0],
            usage.get("total_tokens"),
        )
