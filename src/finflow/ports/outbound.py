"""Outbound ports — interfaces that infrastructure adapters must implement.

The resilient client depends only on :class:`LLMProvider`; concrete vendor
adapters live under ``finflow.adapters.outbound.llm``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from finflow.shared.llm.types import CallOptions, LLMResponse, Message


class LLMProvider(ABC):
    """A remote model backend behind a uniform call contract.

    Implementations must translate every failure into an
    ``LLMProviderError`` subclass and must not mutate shared state.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier used in logs and error attribution."""

    @abstractmethod
    async def call(
        self, messages: Sequence[Message], options: CallOptions | None = None
    ) -> LLMResponse:
        """Send the conversation and return the generated text.

        Raises:
            LLMProviderError: Or one of its subclasses, on any failure.
        """

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Minimal round-trip probe.  Never raises."""

    def get_name(self) -> str:
        return self.name

    async def aclose(self) -> None:
        """Release transport resources, if any."""
