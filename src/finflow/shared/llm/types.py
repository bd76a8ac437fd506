"""Core types for the resilient LLM client."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Sequence


class Role(str, enum.Enum):
    """Speaker of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(Role.ASSISTANT, content)


Conversation = tuple[Message, ...]


def as_conversation(messages: Sequence[Message]) -> Conversation:
    """Freeze any message sequence into an immutable conversation."""
    return tuple(messages)


@dataclass(frozen=True)
class CallOptions:
    """Per-call tuning.  ``None`` means "use the provider default".

    Attributes:
        temperature: Sampling temperature.
        max_tokens:  Upper bound on generated tokens.
        models:      Ordered model identifiers to try.
        timeout_s:   Per-attempt timeout in seconds.
    """

    temperature: float | None = None
    max_tokens: int | None = None
    models: tuple[str, ...] | None = None
    timeout_s: float | None = None

    def with_timeout(self, timeout_s: float) -> CallOptions:
        return replace(self, timeout_s=timeout_s)


@dataclass(frozen=True)
class ResponseMetadata:
    provider: str
    model: str | None = None
    tokens: int | None = None
    duration_s: float = 0.0
    cached: bool = False
    fallback: bool = False


@dataclass(frozen=True)
class LLMResponse:
    content: str
    metadata: ResponseMetadata

    def with_metadata(self, **changes: object) -> LLMResponse:
        """Copy of this response with selected metadata fields replaced."""
        return replace(self, metadata=replace(self.metadata, **changes))


@dataclass(frozen=True)
class CacheConfig:
    """Cache policy.

    Attributes:
        enabled:  Whether lookups and stores happen at all.
        ttl_s:    Entry lifetime in seconds.
        max_size: Maximum number of live entries.
    """

    enabled: bool = True
    ttl_s: float = 3600.0
    max_size: int = 1000


@dataclass(frozen=True)
class CacheMetrics:
    hits: int
    misses: int
    size: int
    hit_rate: float


@dataclass(frozen=True)
class LLMClientConfig:
    """Process-wide policy for :class:`ResilientLLMClient`.

    Attributes:
        cache:             Cache policy.
        fallback_enabled:  Try providers after the primary when it fails.
        default_timeout_s: Per-attempt timeout unless the call overrides it.
        max_retries:       Attempts per provider (minimum one).
        retry_delay_s:     Base delay; attempt ``n`` waits ``n * retry_delay_s``.
        gemini_api_key:    Credential for the primary provider.
        openrouter_api_key: Credential for the fallback provider.
    """

    cache: CacheConfig = field(default_factory=CacheConfig)
    fallback_enabled: bool = True
    default_timeout_s: float = 30.0
    max_retries: int = 2
    retry_delay_s: float = 1.0
    gemini_api_key: str = field(default="", repr=False)
    openrouter_api_key: str = field(default="", repr=False)
