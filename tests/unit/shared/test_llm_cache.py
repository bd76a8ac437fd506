"""Tests for the TTL + LRU response cache and its key derivation."""

from __future__ import annotations

import pytest

from finflow.shared.llm import (
    CacheConfig,
    CallOptions,
    LLMResponse,
    Message,
    ResponseCache,
    ResponseMetadata,
    cache_key,
)


def _response(content: str) -> LLMResponse:
    return LLMResponse(content=content, metadata=ResponseMetadata(provider="gemini"))


def _conv(text: str) -> tuple[Message, ...]:
    return (Message.user(text),)


# ═══════════════════════════════════════════════════════════════
#  Key derivation
# ═══════════════════════════════════════════════════════════════
class TestCacheKey:
    def test_equal_inputs_produce_equal_keys(self, conversation) -> None:
        opts = CallOptions(temperature=0.1, max_tokens=500)
        assert cache_key(conversation, opts) == cache_key(list(conversation), opts)

    def test_key_is_sha256_hex(self, conversation) -> None:
        key = cache_key(conversation)
        assert len(key) == 64
        int(key, 16)

    def test_model_order_is_ignored(self, conversation) -> None:
        a = CallOptions(models=("m1", "m2"))
        b = CallOptions(models=("m2", "m1"))
        assert cache_key(conversation, a) == cache_key(conversation, b)

    def test_temperature_changes_key(self, conversation) -> None:
        assert cache_key(conversation, CallOptions(temperature=0.1)) != cache_key(
            conversation, CallOptions(temperature=0.2)
        )

    def test_message_content_and_role_change_key(self) -> None:
        assert cache_key(_conv("a")) != cache_key(_conv("b"))
        assert cache_key((Message.user("a"),)) != cache_key((Message.system("a"),))

    def test_timeout_does_not_affect_key(self, conversation) -> None:
        assert cache_key(conversation, CallOptions(timeout_s=5.0)) == cache_key(
            conversation, CallOptions(timeout_s=60.0)
        )

    def test_missing_options_equal_default_options(self, conversation) -> None:
        assert cache_key(conversation, None) == cache_key(conversation, CallOptions())


# ═══════════════════════════════════════════════════════════════
#  Lookup / store
# ═══════════════════════════════════════════════════════════════
class TestResponseCacheBasics:
    def test_miss_then_hit(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        assert cache.get(conversation) is None

        cache.set(conversation, None, sample_response)
        hit = cache.get(conversation)

        assert hit is not None
        assert hit.content == sample_response.content
        assert hit.metadata.cached is True
        assert hit.metadata.provider == "gemini"

    def test_stored_entry_is_not_marked_cached(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.set(conversation, None, sample_response.with_metadata(cached=True))
        cache.get(conversation)
        # A second hit still reports cached=True without compounding state.
        assert cache.get(conversation).metadata.cached is True

    def test_options_are_part_of_identity(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.set(conversation, CallOptions(temperature=0.1), sample_response)
        assert cache.get(conversation, CallOptions(temperature=0.9)) is None
        assert cache.get(conversation, CallOptions(temperature=0.1)) is not None

    def test_metrics(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.get(conversation)
        cache.set(conversation, None, sample_response)
        cache.get(conversation)
        cache.get(conversation)

        m = cache.get_metrics()
        assert m.hits == 2
        assert m.misses == 1
        assert m.size == 1
        assert m.hit_rate == pytest.approx(2 / 3)

    def test_hit_rate_is_zero_without_lookups(self) -> None:
        assert ResponseCache().get_metrics().hit_rate == 0.0

    def test_clear_resets_entries_and_counters(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.set(conversation, None, sample_response)
        cache.get(conversation)
        cache.clear()

        m = cache.get_metrics()
        assert (m.hits, m.misses, m.size) == (0, 0, 0)
        assert len(cache) == 0

    def test_warm_preloads_entries(self, clock, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.warm([(_conv("a"), None, sample_response), (_conv("b"), None, sample_response)])
        assert len(cache) == 2
        assert cache.get(_conv("b")) is not None


# ═══════════════════════════════════════════════════════════════
#  TTL expiry
# ═══════════════════════════════════════════════════════════════
class TestResponseCacheTTL:
    def test_entry_lives_until_ttl(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(CacheConfig(ttl_s=10.0), clock=clock)
        cache.set(conversation, None, sample_response)
        clock.advance(10.0)
        assert cache.get(conversation) is not None

    def test_expired_entry_is_a_miss_and_removed(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(CacheConfig(ttl_s=10.0), clock=clock)
        cache.set(conversation, None, sample_response)
        clock.advance(10.5)

        assert cache.get(conversation) is None
        assert len(cache) == 0
        assert cache.get_metrics().misses == 1

    def test_hits_do_not_extend_ttl(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(CacheConfig(ttl_s=10.0), clock=clock)
        cache.set(conversation, None, sample_response)
        clock.advance(8.0)
        assert cache.get(conversation) is not None
        clock.advance(3.0)
        assert cache.get(conversation) is None

    def test_set_purges_expired_entries(self, clock, sample_response) -> None:
        cache = ResponseCache(CacheConfig(ttl_s=10.0), clock=clock)
        cache.set(_conv("old"), None, sample_response)
        clock.advance(11.0)
        cache.set(_conv("new"), None, sample_response)
        assert len(cache) == 1


# ═══════════════════════════════════════════════════════════════
#  LRU eviction
# ═══════════════════════════════════════════════════════════════
class TestResponseCacheLRU:
    def test_least_recently_used_is_evicted(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=2), clock=clock)
        cache.set(_conv("a"), None, _response("A"))
        clock.advance(1)
        cache.set(_conv("b"), None, _response("B"))
        clock.advance(1)
        cache.set(_conv("c"), None, _response("C"))

        assert len(cache) == 2
        assert cache.get(_conv("a")) is None
        assert cache.get(_conv("b")).content == "B"
        assert cache.get(_conv("c")).content == "C"

    def test_get_protects_entry_from_eviction(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=2), clock=clock)
        cache.set(_conv("a"), None, _response("A"))
        clock.advance(1)
        cache.set(_conv("b"), None, _response("B"))
        clock.advance(1)
        assert cache.get(_conv("a")) is not None
        clock.advance(1)
        cache.set(_conv("c"), None, _response("C"))

        assert cache.get(_conv("a")) is not None
        assert cache.get(_conv("b")) is None
        assert cache.get(_conv("c")) is not None

    def test_overwriting_existing_key_does_not_evict(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=2), clock=clock)
        cache.set(_conv("a"), None, _response("A"))
        clock.advance(1)
        cache.set(_conv("b"), None, _response("B"))
        clock.advance(1)
        cache.set(_conv("a"), None, _response("A2"))

        assert len(cache) == 2
        assert cache.get(_conv("a")).content == "A2"
        assert cache.get(_conv("b")) is not None

    def test_equal_timestamps_evict_in_insertion_order(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=2), clock=clock)
        cache.set(_conv("a"), None, _response("A"))
        cache.set(_conv("b"), None, _response("B"))
        cache.set(_conv("c"), None, _response("C"))
        assert cache.get(_conv("a")) is None
        assert cache.get(_conv("b")) is not None

    def test_size_never_exceeds_max(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=3), clock=clock)
        for i in range(10):
            cache.set(_conv(str(i)), None, _response(str(i)))
            clock.advance(1)
            assert len(cache) <= 3

    def test_zero_capacity_stores_nothing(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(CacheConfig(max_size=0), clock=clock)
        cache.set(conversation, None, sample_response)
        assert len(cache) == 0


# ═══════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════
class TestResponseCacheConfig:
    def test_disabled_cache_is_inert(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(CacheConfig(enabled=False), clock=clock)
        cache.set(conversation, None, sample_response)

        assert cache.get(conversation) is None
        m = cache.get_metrics()
        assert (m.hits, m.misses, m.size) == (0, 0, 0)

    def test_disabling_at_runtime_clears_entries(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.set(conversation, None, sample_response)
        cache.update_config(enabled=False)

        assert len(cache) == 0
        assert cache.get_config().enabled is False

    def test_update_merges_fields(self) -> None:
        cache = ResponseCache(CacheConfig(ttl_s=60.0, max_size=5))
        cache.update_config(ttl_s=5.0)
        assert cache.get_config() == CacheConfig(enabled=True, ttl_s=5.0, max_size=5)

    def test_lowering_max_size_evicts_immediately(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=5), clock=clock)
        for i in range(5):
            cache.set(_conv(str(i)), None, _response(str(i)))
            clock.advance(1)
        cache.update_config(max_size=2)

        assert len(cache) == 2
        assert cache.get_metrics().size == 2
        assert cache.get(_conv("2")) is None
        assert cache.get(_conv("3")) is not None
        assert cache.get(_conv("4")) is not None

    def test_store_after_lowering_max_size_keeps_limit(self, clock) -> None:
        cache = ResponseCache(CacheConfig(max_size=5), clock=clock)
        for i in range(5):
            cache.set(_conv(str(i)), None, _response(str(i)))
            clock.advance(1)
        cache.update_config(max_size=2)
        cache.set(_conv("new"), None, _response("new"))

        assert len(cache) == 2
        assert cache.get(_conv("4")) is not None
        assert cache.get(_conv("new")) is not None

    def test_zero_max_size_at_runtime_empties_cache(self, clock, conversation, sample_response) -> None:
        cache = ResponseCache(clock=clock)
        cache.set(conversation, None, sample_response)
        cache.update_config(max_size=0)
        assert len(cache) == 0
