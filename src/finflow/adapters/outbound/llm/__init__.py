"""LLM provider adapters.

Each adapter is a thin HTTP mapping; retries, failover and caching live in
``finflow.shared.llm.client.ResilientLLMClient``.
"""

from __future__ import annotations

from typing import Sequence

import httpx
import structlog

from finflow.adapters.outbound.llm.base import BaseHTTPProvider
from finflow.adapters.outbound.llm.gemini import (
    GEMINI_DEFAULT_MODEL,
    GeminiProvider,
    build_gemini_request,
)
from finflow.adapters.outbound.llm.openrouter import (
    OPENROUTER_BASE_URL,
    OPENROUTER_DEFAULT_MODELS,
    OpenRouterProvider,
    build_openrouter_request,
)
from finflow.ports.outbound import LLMProvider
from finflow.shared.llm.types import LLMClientConfig

logger = structlog.get_logger(__name__)


def build_default_providers(
    config: LLMClientConfig,
    *,
    gemini_model: str = GEMINI_DEFAULT_MODEL,
    openrouter_models: Sequence[str] = OPENROUTER_DEFAULT_MODELS,
    openrouter_base_url: str = OPENROUTER_BASE_URL,
    app_url: str = "http://localhost:3000",
    app_title: str = "Finance Bot API",
    client: httpx.AsyncClient | None = None,
) -> list[LLMProvider]:
    """Build the provider chain in priority order.

    Gemini is always the primary.  OpenRouter is appended only when a key
    is configured; the client decides whether fallbacks are used at all.
    """
    providers: list[LLMProvider] = [
        GeminiProvider(config.gemini_api_key, model=gemini_model, client=client)
    ]
    if config.openrouter_api_key:
        providers.append(
            OpenRouterProvider(
                config.openrouter_api_key,
                models=openrouter_models,
                base_url=openrouter_base_url,
                app_url=app_url,
                app_title=app_title,
                client=client,
            )
        )
    else:
        logger.debug("openrouter_provider_skipped", reason="no_api_key")
    return providers


__all__ = [
    "BaseHTTPProvider",
    "GeminiProvider",
    "OpenRouterProvider",
    "build_default_providers",
    "build_gemini_request",
    "build_openrouter_request",
]
