"""Tests for the error taxonomy and its HTTP boundary mapping."""

from __future__ import annotations

import pytest

from finflow.domain.enums import ErrorKind
from finflow.domain.exceptions import (
    AllProvidersFailedError,
    DomainError,
    LLMAuthenticationError,
    LLMInvalidResponseError,
    LLMProviderError,
    LLMQuotaExceededError,
    LLMTimeoutError,
    ValidationError,
)
from finflow.shared.errors import problem_details_for, status_code_for


# ═══════════════════════════════════════════════════════════════
#  Exceptions
# ═══════════════════════════════════════════════════════════════
class TestProviderErrors:
    def test_generic_defaults(self) -> None:
        err = LLMProviderError("boom", "gemini")
        assert err.code == "PROVIDER_ERROR"
        assert err.kind is ErrorKind.PROVIDER
        assert err.status_code is None
        assert isinstance(err, DomainError)
        assert str(err) == "boom"

    def test_timeout(self) -> None:
        err = LLMTimeoutError("no answer", "gemini", 2.5)
        assert err.message == "Request timed out after 2.5s: no answer"
        assert err.code == "TIMEOUT"
        assert err.kind is ErrorKind.TIMEOUT
        assert err.timeout_s == 2.5

    def test_quota(self) -> None:
        err = LLMQuotaExceededError("slow down", "openrouter", retry_after_s=30.0)
        assert (err.code, err.status_code, err.retry_after_s) == ("QUOTA_EXCEEDED", 429, 30.0)
        assert err.kind is ErrorKind.QUOTA

    def test_authentication(self) -> None:
        err = LLMAuthenticationError("bad key", "gemini", status_code=403)
        assert (err.code, err.status_code) == ("AUTHENTICATION_FAILED", 403)
        assert err.kind is ErrorKind.AUTHENTICATION

    def test_invalid_response(self) -> None:
        err = LLMInvalidResponseError("no choices", "openrouter")
        assert err.code == "INVALID_RESPONSE"
        assert err.kind is ErrorKind.INVALID_RESPONSE

    def test_repr_names_provider(self) -> None:
        assert "provider='gemini'" in repr(LLMProviderError("x", "gemini"))

    def test_aggregate(self) -> None:
        errors = [LLMTimeoutError("t", "gemini", 1.0), LLMProviderError("down", "openrouter")]
        err = AllProvidersFailedError(errors)

        assert err.errors == errors
        assert err.providers == ["gemini", "openrouter"]
        assert err.code == "ALL_PROVIDERS_FAILED"
        assert err.message.startswith("All LLM providers failed: gemini: Request timed out")
        assert err.message.endswith("openrouter: down")
        assert not isinstance(err, LLMProviderError)


# ═══════════════════════════════════════════════════════════════
#  HTTP mapping
# ═══════════════════════════════════════════════════════════════
class TestStatusMapping:
    @pytest.mark.parametrize(
        "exc, status",
        [
            (LLMTimeoutError("t", "p", 1.0), 504),
            (LLMQuotaExceededError("q", "p"), 429),
            (LLMAuthenticationError("a", "p"), 401),
            (LLMInvalidResponseError("i", "p"), 502),
            (LLMProviderError("g", "p"), 502),
            (AllProvidersFailedError([LLMProviderError("g", "p")]), 503),
            (ValidationError("bad input"), 422),
            (DomainError("other"), 400),
            (RuntimeError("surprise"), 500),
        ],
    )
    def test_status_code_for(self, exc: BaseException, status: int) -> None:
        assert status_code_for(exc) == status

    def test_problem_details_for_quota(self) -> None:
        body = problem_details_for(
            LLMQuotaExceededError("rate limited", "openrouter", retry_after_s=7.0),
            instance="/api/v1/transactions/extract",
        )
        assert body == {
            "type": "about:blank",
            "title": "Too Many Requests",
            "status": 429,
            "detail": "rate limited",
            "code": "QUOTA_EXCEEDED",
            "provider": "openrouter",
            "retry_after_s": 7.0,
            "instance": "/api/v1/transactions/extract",
        }

    def test_problem_details_for_aggregate(self) -> None:
        body = problem_details_for(
            AllProvidersFailedError(
                [LLMAuthenticationError("bad key", "gemini"), LLMProviderError("down", "openrouter")]
            )
        )
        assert body["status"] == 503
        assert body["errors"] == [
            {"provider": "gemini", "code": "AUTHENTICATION_FAILED", "detail": "bad key"},
            {"provider": "openrouter", "code": "PROVIDER_ERROR", "detail": "down"},
        ]
        assert "instance" not in body

    def test_problem_details_hide_unexpected_errors(self) -> None:
        body = problem_details_for(RuntimeError("secret internals"))
        assert body["status"] == 500
        assert body["code"] == "INTERNAL_ERROR"
        assert "secret" not in body["detail"]
