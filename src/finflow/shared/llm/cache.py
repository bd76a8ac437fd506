"""In-memory LLM response cache with TTL expiry and LRU eviction.

Keys are SHA-256 digests of a canonical serialization of the conversation
and the options that influence generation.  Order-insensitive options (the
requested model list) are sorted first, so logically equal requests collide.
"""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Sequence

import orjson
import structlog

from finflow.shared.llm.types import (
    CacheConfig,
    CacheMetrics,
    CallOptions,
    LLMResponse,
    Message,
)
from finflow.shared.observability.metrics import LLM_CACHE_LOOKUPS, LLM_CACHE_SIZE

logger = structlog.get_logger(__name__)


@dataclass
class _CacheEntry:
    response: LLMResponse
    expires_at: float
    last_accessed: float
    access_count: int = 0


def cache_key(messages: Sequence[Message], options: CallOptions | None = None) -> str:
    """Deterministic key for a (conversation, options) pair.

    ``timeout_s`` does not affect the generated text and is left out.
    """
    options = options or CallOptions()
    content = {
        "messages": [{"role": m.role.value, "content": m.content} for m in messages],
        "temperature": options.temperature,
        "max_tokens": options.max_tokens,
        "models": sorted(options.models) if options.models is not None else None,
    }
    serialized = orjson.dumps(content, option=orjson.OPT_SORT_KEYS)
    return hashlib.sha256(serialized).hexdigest()


class ResponseCache:
    """Thread-safe, bounded TTL + LRU cache for provider responses."""

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    # ── Lookup ───────────────────────────────────────────────
    def get(
        self, messages: Sequence[Message], options: CallOptions | None = None
    ) -> LLMResponse | None:
        if not self._config.enabled:
            return None

        key = cache_key(messages, options)
        with self._lock:
            entry = self._entries.get(key)
            now = self._clock()

            if entry is None:
                self._misses += 1
                LLM_CACHE_LOOKUPS.labels(result="miss").inc()
                return None

            if now > entry.expires_at:
                del self._entries[key]
                self._misses += 1
                LLM_CACHE_LOOKUPS.labels(result="miss").inc()
                LLM_CACHE_SIZE.set(len(self._entries))
                return None

            entry.access_count += 1
            entry.last_accessed = now
            self._hits += 1
            LLM_CACHE_LOOKUPS.labels(result="hit").inc()
            return entry.response.with_metadata(cached=True)

    # ── Store ────────────────────────────────────────────────
    def set(
        self,
        messages: Sequence[Message],
        options: CallOptions | None,
        response: LLMResponse,
    ) -> None:
        if not self._config.enabled or self._config.max_size <= 0:
            return

        key = cache_key(messages, options)
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if key not in self._entries:
                self._evict_lru(self._config.max_size - 1)

            self._entries[key] = _CacheEntry(
                response=response.with_metadata(cached=False),
                expires_at=now + self._config.ttl_s,
                last_accessed=now,
            )
            LLM_CACHE_SIZE.set(len(self._entries))

    def warm(
        self,
        entries: Iterable[tuple[Sequence[Message], CallOptions | None, LLMResponse]],
    ) -> None:
        """Preload known (conversation, options, response) triples."""
        if not self._config.enabled:
            return
        count = 0
        for messages, options, response in entries:
            self.set(messages, options, response)
            count += 1
        logger.info("llm_cache_warmed", entries=count)

    # ── Maintenance ──────────────────────────────────────────
    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            LLM_CACHE_SIZE.set(0)

    def get_metrics(self) -> CacheMetrics:
        with self._lock:
            total = self._hits + self._misses
            return CacheMetrics(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                hit_rate=self._hits / total if total else 0.0,
            )

    def get_config(self) -> CacheConfig:
        return self._config

    def update_config(self, **changes: object) -> None:
        """Merge configuration; disabling the cache drops every entry."""
        self._config = replace(self._config, **changes)
        if not self._config.enabled:
            self.clear()
            logger.info("llm_cache_disabled")
            return
        with self._lock:
            self._evict_lru(max(self._config.max_size, 0))
            LLM_CACHE_SIZE.set(len(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Internals (caller holds lock) ────────────────────────
    def _purge_expired(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if now > e.expires_at]
        for k in expired:
            del self._entries[k]

    def _evict_lru(self, limit: int) -> None:
        while len(self._entries) > limit:
            # min() keeps the first of equal timestamps, i.e. insertion order
            oldest_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
            del self._entries[oldest_key]
            logger.debug("llm_cache_evicted", key=oldest_key[:12])
