"""Prometheus metrics for the extraction platform."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


# ── Cache metrics ────────────────────────────────────────────
LLM_CACHE_LOOKUPS = Counter(
    "llm_cache_lookups_total",
    "LLM response cache lookups",
    ["result"],  # hit / miss
)

LLM_CACHE_SIZE = Gauge(
    "llm_cache_entries",
    "Number of live entries in the LLM response cache",
)

# ── Provider metrics ─────────────────────────────────────────
LLM_PROVIDER_CALLS = Counter(
    "llm_provider_calls_total",
    "LLM provider call attempts",
    ["provider", "status"],
)

LLM_PROVIDER_LATENCY = Histogram(
    "llm_provider_latency_seconds",
    "LLM provider response latency",
    ["provider"],
    buckets=(0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

LLM_FALLBACKS_TOTAL = Counter(
    "llm_fallbacks_total",
    "Calls answered by a non-primary provider",
    ["provider"],
)
