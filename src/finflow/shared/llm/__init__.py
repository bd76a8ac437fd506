"""Provider abstraction, failover, retry and response caching for LLM calls."""

from finflow.shared.llm.cache import ResponseCache, cache_key
from finflow.shared.llm.client import ResilientLLMClient, retry_decision
from finflow.shared.llm.types import (
    CacheConfig,
    CacheMetrics,
    CallOptions,
    Conversation,
    LLMClientConfig,
    LLMResponse,
    Message,
    ResponseMetadata,
    Role,
)

__all__ = [
    "CacheConfig",
    "CacheMetrics",
    "CallOptions",
    "Conversation",
    "LLMClientConfig",
    "LLMResponse",
    "Message",
    "ResilientLLMClient",
    "ResponseCache",
    "ResponseMetadata",
    "Role",
    "cache_key",
    "retry_decision",
]
