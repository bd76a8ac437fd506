"""finflow — Application Configuration."""

from __future__ import annotations

import enum
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from finflow.adapters.outbound.llm.gemini import GEMINI_DEFAULT_MODEL
from finflow.adapters.outbound.llm.openrouter import (
    OPENROUTER_BASE_URL,
    OPENROUTER_DEFAULT_MODELS,
)


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_env: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"
    app_url: str = "http://localhost:3000"
    app_title: str = "Finance Bot API"

    # ── LLM providers ────────────────────────────────────────
    gemini_api_key: str = ""
    gemini_model: str = GEMINI_DEFAULT_MODEL
    openrouter_api_key: str = ""
    # Comma-separated in the environment, tried in order.
    openrouter_models: Annotated[tuple[str, ...], NoDecode] = OPENROUTER_DEFAULT_MODELS
    openrouter_base_url: str = OPENROUTER_BASE_URL

    # ── LLM resilience ───────────────────────────────────────
    llm_cache_enabled: bool = True
    llm_cache_ttl_seconds: float = 3600.0
    llm_cache_max_size: int = 1000
    llm_fallback_enabled: bool = True
    llm_timeout_seconds: float = 30.0
    llm_max_retries: int = 2
    llm_retry_delay_seconds: float = 1.0

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("openrouter_models", mode="before")
    @classmethod
    def _split_models(cls, v: Any) -> Any:
        if isinstance(v, str):
            return tuple(m.strip() for m in v.split(",") if m.strip())
        return v

    @field_validator("llm_timeout_seconds", "llm_cache_ttl_seconds")
    @classmethod
    def _positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("llm_max_retries")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("llm_max_retries must be at least 1")
        return v


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
