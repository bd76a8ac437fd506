"""Dependency wiring — builds the LLM client and services from settings.

Nothing here is a module-level singleton: callers own the instances they
create and are responsible for ``await client.aclose()``.
"""

from __future__ import annotations

from functools import lru_cache, partial

import httpx
import structlog

from finflow.adapters.outbound.llm import build_default_providers
from finflow.application.services import TransactionExtractionService
from finflow.config import Settings, get_settings
from finflow.shared.llm import CacheConfig, LLMClientConfig, ResilientLLMClient
from finflow.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


def build_client_config(settings: Settings) -> LLMClientConfig:
    return LLMClientConfig(
        cache=CacheConfig(
            enabled=settings.llm_cache_enabled,
            ttl_s=settings.llm_cache_ttl_seconds,
            max_size=settings.llm_cache_max_size,
        ),
        fallback_enabled=settings.llm_fallback_enabled,
        default_timeout_s=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
        retry_delay_s=settings.llm_retry_delay_seconds,
        gemini_api_key=settings.gemini_api_key,
        openrouter_api_key=settings.openrouter_api_key,
    )


# ── LLM ──────────────────────────────────────────────────────
def create_llm_client(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ResilientLLMClient:
    """Build a fully wired client from settings.

    ``http_client`` is shared by every provider when given; otherwise each
    provider opens and owns its own.
    """
    s = settings or get_cached_settings()
    factory = partial(
        build_default_providers,
        gemini_model=s.gemini_model,
        openrouter_models=s.openrouter_models,
        openrouter_base_url=s.openrouter_base_url,
        app_url=s.app_url,
        app_title=s.app_title,
        client=http_client,
    )
    client = ResilientLLMClient(build_client_config(s), provider_factory=factory)
    logger.info(
        "llm_client_created",
        providers=client.get_providers(),
        cache_enabled=s.llm_cache_enabled,
        fallback_enabled=s.llm_fallback_enabled,
    )
    return client


def create_extraction_service(
    client: ResilientLLMClient | None = None, settings: Settings | None = None
) -> TransactionExtractionService:
    return TransactionExtractionService(client or create_llm_client(settings))


def bootstrap(settings: Settings | None = None) -> TransactionExtractionService:
    """Configure logging and return a ready extraction service."""
    s = settings or get_cached_settings()
    configure_logging(log_level=s.log_level, json_logs=s.is_production)
    return create_extraction_service(settings=s)
