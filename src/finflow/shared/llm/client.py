"""Resilient LLM client — the single entry-point for model calls.

Composes the response cache with an ordered provider chain.  Each call
checks the cache, then walks the providers in priority order with a
bounded, strictly sequential retry loop per provider, and either returns
the first success or raises a precisely typed error.

Concurrent identical calls are *not* coalesced: two simultaneous misses
for the same key both reach a provider.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import asdict, replace
from typing import TYPE_CHECKING, Any, Callable, Sequence, assert_never

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from finflow.domain.enums import ErrorKind, RetryDecision
from finflow.domain.exceptions import AllProvidersFailedError, LLMProviderError
from finflow.shared.llm.cache import ResponseCache
from finflow.shared.llm.types import (
    CacheConfig,
    CacheMetrics,
    CallOptions,
    Conversation,
    LLMClientConfig,
    LLMResponse,
    Message,
    as_conversation,
)
from finflow.shared.observability.metrics import (
    LLM_FALLBACKS_TOTAL,
    LLM_PROVIDER_CALLS,
    LLM_PROVIDER_LATENCY,
)

if TYPE_CHECKING:
    from finflow.ports.outbound import LLMProvider

    ProviderFactory = Callable[[LLMClientConfig], Sequence[LLMProvider]]

logger = structlog.get_logger(__name__)

# Changing any of these rebuilds the provider chain.
_CREDENTIAL_FIELDS = frozenset({"gemini_api_key", "openrouter_api_key"})


def retry_decision(error: LLMProviderError) -> RetryDecision:
    """Whether another attempt against the same provider is worthwhile."""
    match error.kind:
        case ErrorKind.AUTHENTICATION | ErrorKind.QUOTA:
            return RetryDecision.ABANDON
        case ErrorKind.TIMEOUT | ErrorKind.INVALID_RESPONSE | ErrorKind.PROVIDER:
            return RetryDecision.RETRY
        case _:
            assert_never(error.kind)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, LLMProviderError) and retry_decision(exc) is RetryDecision.RETRY


def _record_failure(error: LLMProviderError, log: Any) -> None:
    LLM_PROVIDER_CALLS.labels(provider=error.provider, status=error.kind.value).inc()
    log.warning("llm_provider_attempt_failed", code=error.code, error=error.message)


class ResilientLLMClient:
    """Cache-fronted, provider-agnostic call orchestrator.

    Usage::

        client = ResilientLLMClient(config, provider_factory=build_default_providers)
        response = await client.call(
            [Message.system("..."), Message.user("...")],
            CallOptions(temperature=0.1, max_tokens=500),
        )

    Either a fixed ``providers`` list or a ``provider_factory`` must be
    given.  The factory is re-run only when credentials change; toggling
    the fallback switch re-filters the providers already built.  Providers
    replaced by a rebuild are closed once no call is still using them.
    """

    def __init__(
        self,
        config: LLMClientConfig | None = None,
        *,
        providers: Sequence[LLMProvider] | None = None,
        provider_factory: ProviderFactory | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        if (providers is None) == (provider_factory is None):
            raise ValueError("Pass exactly one of 'providers' or 'provider_factory'")

        self._config = config or LLMClientConfig()
        if providers is not None:
            fixed = list(providers)
            self._factory: ProviderFactory = lambda _cfg: fixed
        else:
            assert provider_factory is not None
            self._factory = provider_factory

        self._cache = cache or ResponseCache(self._config.cache)
        self._candidates: list[LLMProvider] = []
        self._providers: list[LLMProvider] = []
        self._retired: list[LLMProvider] = []
        self._in_flight: Counter[int] = Counter()
        self._closing: set[asyncio.Task[None]] = set()
        self._initialize_providers()

    # ── Main entry-point ─────────────────────────────────────
    async def call(
        self, messages: Sequence[Message], options: CallOptions | None = None
    ) -> LLMResponse:
        """Return a response from the cache or the first healthy provider.

        Raises:
            LLMProviderError: Fallback disabled and the only provider failed.
            AllProvidersFailedError: Every provider in the chain failed.
        """
        conversation = as_conversation(messages)

        cached = self._cache.get(conversation, options)
        if cached is not None:
            logger.debug("llm_cache_hit", provider=cached.metadata.provider)
            return cached

        attempt_options = options or CallOptions()
        if attempt_options.timeout_s is None:
            attempt_options = attempt_options.with_timeout(self._config.default_timeout_s)

        # Snapshot so a concurrent update_config cannot reorder this call.
        providers = list(self._providers)
        fallback_enabled = self._config.fallback_enabled
        errors: list[LLMProviderError] = []

        for index, provider in enumerate(providers):
            self._in_flight[id(provider)] += 1
            try:
                response = await self._call_with_retries(
                    provider, conversation, attempt_options
                )
            except LLMProviderError as exc:
                errors.append(exc)
                logger.warning(
                    "llm_provider_failed",
                    provider=provider.name,
                    code=exc.code,
                    error=exc.message,
                )
                continue
            finally:
                self._release(provider)

            if index > 0:
                response = response.with_metadata(fallback=True)
                LLM_FALLBACKS_TOTAL.labels(provider=provider.name).inc()
                logger.info(
                    "llm_fallback_success",
                    provider=provider.name,
                    failed_providers=[e.provider for e in errors],
                )

            self._cache.set(conversation, options, response)
            return response.with_metadata(cached=False)

        logger.error(
            "llm_all_providers_failed",
            providers=[e.provider for e in errors],
            codes=[e.code for e in errors],
        )
        if not fallback_enabled and len(errors) == 1:
            raise errors[0]
        raise AllProvidersFailedError(errors)

    # ── Provider-level attempt (bounded sequential retries) ──
    async def _call_with_retries(
        self,
        provider: LLMProvider,
        conversation: Conversation,
        options: CallOptions,
    ) -> LLMResponse:
        max_attempts = max(1, self._config.max_retries)
        delay = self._config.retry_delay_s
        log = logger.bind(provider=provider.name, max_attempts=max_attempts)

        def _log_retry(state: RetryCallState) -> None:
            log.info(
                "llm_provider_retry_scheduled",
                attempt=state.attempt_number,
                sleep_s=state.next_action.sleep if state.next_action else None,
            )

        # Attempt n is followed by a sleep of n * delay.
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_incrementing(start=delay, increment=delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            sleep=asyncio.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                attempt_log = log.bind(attempt=attempt.retry_state.attempt_number)
                return await self._attempt(provider, conversation, options, attempt_log)
        raise AssertionError("unreachable: tenacity re-raises the final error")

    async def _attempt(
        self,
        provider: LLMProvider,
        conversation: Conversation,
        options: CallOptions,
        log: Any,
    ) -> LLMResponse:
        log.debug("llm_provider_attempt")
        start = time.monotonic()
        try:
            response = await provider.call(conversation, options)
        except LLMProviderError as exc:
            _record_failure(exc, log)
            raise
        except Exception as exc:
            error = LLMProviderError(
                f"Unknown error: {exc}", provider.name, code="UNKNOWN_ERROR"
            )
            _record_failure(error, log)
            raise error from exc

        latency = time.monotonic() - start
        LLM_PROVIDER_CALLS.labels(provider=provider.name, status="success").inc()
        LLM_PROVIDER_LATENCY.labels(provider=provider.name).observe(latency)
        log.info("llm_provider_success", duration_s=round(latency, 3))
        return response

    # ── Provider chain ───────────────────────────────────────
    def _initialize_providers(self) -> None:
        candidates = list(self._factory(self._config))
        if not candidates:
            raise ValueError("At least one LLM provider is required")

        replaced = [
            p for p in self._candidates if not any(p is c for c in candidates)
        ]
        self._candidates = candidates
        self._select_active()
        for provider in replaced:
            if not any(provider is r for r in self._retired):
                self._retired.append(provider)
        self._close_idle_retired()

    def _select_active(self) -> None:
        # Built but inactive candidates stay open until aclose().
        if self._config.fallback_enabled:
            self._providers = list(self._candidates)
        else:
            self._providers = self._candidates[:1]

        logger.info(
            "llm_providers_initialized",
            providers=self.get_providers(),
            fallback_enabled=self._config.fallback_enabled,
        )

    def _release(self, provider: LLMProvider) -> None:
        key = id(provider)
        self._in_flight[key] -= 1
        if self._in_flight[key] <= 0:
            del self._in_flight[key]
            if any(provider is r for r in self._retired):
                self._close_idle_retired()

    def _close_idle_retired(self) -> None:
        """Schedule ``aclose`` for retired providers with no call in flight.

        Without a running loop the retired providers wait for :meth:`aclose`.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        idle = [p for p in self._retired if not self._in_flight[id(p)]]
        if not idle:
            return
        self._retired = [p for p in self._retired if self._in_flight[id(p)]]
        for provider in idle:
            logger.debug("llm_provider_retired", provider=provider.name)
            task = loop.create_task(provider.aclose())
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    @property
    def providers(self) -> list[LLMProvider]:
        return list(self._providers)

    def get_providers(self) -> list[str]:
        return [p.name for p in self._providers]

    async def check_health(self) -> dict[str, bool]:
        results = await asyncio.gather(
            *(p.is_healthy() for p in self._providers), return_exceptions=True
        )
        return {
            p.name: result is True for p, result in zip(self._providers, results)
        }

    # ── Cache ────────────────────────────────────────────────
    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def get_cache_metrics(self) -> CacheMetrics:
        return self._cache.get_metrics()

    def clear_cache(self) -> None:
        self._cache.clear()

    # ── Configuration ────────────────────────────────────────
    def get_config(self) -> LLMClientConfig:
        return replace(self._config, cache=self._cache.get_config())

    def update_config(self, **changes: Any) -> None:
        """Merge configuration at runtime without losing cache state.

        ``cache`` may be a full :class:`CacheConfig` or a mapping of the
        cache fields to change.
        """
        cache_changes = changes.pop("cache", None)
        if cache_changes is not None:
            if isinstance(cache_changes, CacheConfig):
                cache_changes = asdict(cache_changes)
            self._cache.update_config(**dict(cache_changes))

        self._config = replace(self._config, cache=self._cache.get_config(), **changes)
        logger.info(
            "llm_client_reconfigured",
            fields=sorted(changes),
            cache_changed=cache_changes is not None,
        )

        if _CREDENTIAL_FIELDS.intersection(changes):
            self._initialize_providers()
        elif "fallback_enabled" in changes:
            self._select_active()

    async def aclose(self) -> None:
        if self._closing:
            await asyncio.gather(*self._closing)
        seen: list[LLMProvider] = []
        for provider in [*self._candidates, *self._retired]:
            if any(provider is s for s in seen):
                continue
            seen.append(provider)
            await provider.aclose()
        self._retired.clear()
