"""Shared test fixtures."""

from __future__ import annotations

import pytest

from finflow.shared.llm import LLMResponse, Message, ResponseMetadata


class FakeClock:
    """Manually advanced stand-in for ``time.monotonic``."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def conversation() -> tuple[Message, ...]:
    return (
        Message.system("You extract transactions."),
        Message.user("Coffee at Starbucks for 4.50"),
    )


@pytest.fixture
def sample_response() -> LLMResponse:
    return LLMResponse(
        content='[{"description": "Coffee", "amount": 4.5}]',
        metadata=ResponseMetadata(provider="gemini", model="gemini-2.0-flash", tokens=42),
    )
