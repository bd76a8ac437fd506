"""Primary provider — Google Gemini via the Generative Language REST API."""

from __future__ import annotations

from typing import Any

import httpx

from finflow.adapters.outbound.llm.base import BaseHTTPProvider
from finflow.domain.exceptions import LLMInvalidResponseError
from finflow.shared.llm.types import CallOptions, Conversation, Role

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_DEFAULT_MODEL = "gemini-2.0-flash"

_GEMINI_ROLES = {Role.USER: "user", Role.ASSISTANT: "model"}


def build_gemini_request(
    conversation: Conversation, options: CallOptions
) -> dict[str, Any]:
    """Map a conversation onto a ``generateContent`` request body.

    System turns are folded into ``systemInstruction``; the remaining turns
    keep their order as ``contents``.
    """
    system_parts = [
        {"text": m.content} for m in conversation if m.role == Role.SYSTEM
    ]
    contents = [
        {"role": _GEMINI_ROLES[m.role], "parts": [{"text": m.content}]}
        for m in conversation
        if m.role != Role.SYSTEM
    ]

    body: dict[str, Any] = {"contents": contents}
    if system_parts:
        body["systemInstruction"] = {"parts": system_parts}

    generation: dict[str, Any] = {}
    if options.temperature is not None:
        generation["temperature"] = options.temperature
    if options.max_tokens is not None:
        generation["maxOutputTokens"] = options.max_tokens
    if generation:
        body["generationConfig"] = generation
    return body


class GeminiProvider(BaseHTTPProvider):
    """Higher-quality primary backend."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = GEMINI_DEFAULT_MODEL,
        base_url: str = GEMINI_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key=api_key, base_url=base_url, client=client)
        self._model = model

    @property
    def name(self) -> str:
        return "gemini"

    def _model_for(self, options: CallOptions) -> str:
        return options.models[0] if options.models else self._model

    def _endpoint(self, options: CallOptions) -> str:
        return f"{self._base_url}/models/{self._model_for(options)}:generateContent"

    def _headers(self) -> dict[str, str]:
        return {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(
        self, conversation: Conversation, options: CallOptions
    ) -> dict[str, Any]:
        return build_gemini_request(conversation, options)

    def _parse_body(
        self, data: Any, payload: dict[str, Any], options: CallOptions
    ) -> tuple[str, str | None, int | None]:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise LLMInvalidResponseError("No candidates returned from Gemini", self.name)

        first = candidates[0] if isinstance(candidates, list) else None
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            parts = []
        texts = [
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        ]
        if not texts:
            raise LLMInvalidResponseError("Invalid content format from Gemini", self.name)

        usage = data.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        return (
            "".join(texts),
            data.get("modelVersion") or self._model_for(options),
            usage.get("totalTokenCount"),
        )
