"""Transaction Extraction Service.

Turns free-form text into structured transactions via the resilient LLM
client.  Provider failover, retries and caching are the client's concern;
this layer owns prompting, payload decoding and validation, and the
user-facing error messages returned to the UI.
"""

from __future__ import annotations

import math
from typing import Any

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from finflow.application.dtos import ActionResult, MissingTransactionData, Transaction
from finflow.application.parsing import parse_json_payload
from finflow.application.prompts import (
    build_extract_transaction_details_messages,
    build_handle_missing_transaction_data_messages,
)
from finflow.domain.enums import TransactionTask
from finflow.domain.exceptions import (
    AllProvidersFailedError,
    LLMProviderError,
    LLMQuotaExceededError,
    LLMTimeoutError,
)
from finflow.shared.llm import CallOptions, ResilientLLMClient

logger = structlog.get_logger(__name__)

EXTRACTION_OPTIONS = CallOptions(temperature=0.1, max_tokens=2000)
MISSING_DATA_OPTIONS = CallOptions(temperature=0.1, max_tokens=500)

_TRANSACTIONS = TypeAdapter(list[Transaction])

# Fields cleared for each single-field task; "type" is reset to N/A.
_TASK_MASKS: dict[TransactionTask, dict[str, Any]] = {
    TransactionTask.CATEGORIZE: {
        "type": "N/A", "amount": None, "date": None,
        "merchant": None, "payment_method": None, "location": None,
    },
    TransactionTask.GET_TRANSACTION_TYPE: {
        "category": None, "amount": None, "date": None,
        "merchant": None, "payment_method": None, "location": None,
    },
    TransactionTask.GET_AMOUNT: {
        "category": None, "type": "N/A", "date": None,
        "merchant": None, "payment_method": None, "location": None,
    },
}


class TransactionExtractionService:
    """Extraction use-cases over a caller-owned :class:`ResilientLLMClient`."""

    def __init__(self, llm: ResilientLLMClient) -> None:
        self._llm = llm

    async def extract_transaction_details(
        self,
        text: str,
        *,
        task: TransactionTask | str | None = None,
        omnibus_mode: bool = False,
    ) -> list[Transaction]:
        """Extract every transaction mentioned in ``text``.

        Unparseable or schema-violating model output yields ``[]``; provider
        failures propagate as ``LLMProviderError`` / ``AllProvidersFailedError``.
        When exactly one transaction is found and ``task`` is given, fields
        unrelated to the task are masked.
        """
        task = TransactionTask(task) if task is not None else None
        messages = build_extract_transaction_details_messages(text, omnibus_mode=omnibus_mode)
        response = await self._llm.call(messages, EXTRACTION_OPTIONS)

        try:
            payload = parse_json_payload(response.content)
            if isinstance(payload, dict):
                payload = [payload]
            transactions = _TRANSACTIONS.validate_python(payload)
        except (ValueError, SchemaError) as exc:
            logger.warning(
                "transaction_extraction_unparseable",
                provider=response.metadata.provider,
                error=str(exc),
                raw=response.content[:200],
            )
            return []

        if len(transactions) == 1 and task is not None:
            transactions = [transactions[0].model_copy(update=_TASK_MASKS[task])]

        logger.info(
            "transactions_extracted",
            count=len(transactions),
            task=task.value if task else None,
            provider=response.metadata.provider,
            cached=response.metadata.cached,
            fallback=response.metadata.fallback,
        )
        return transactions

    async def handle_missing_transaction_data(
        self, description: str
    ) -> MissingTransactionData:
        """Infer amount, date and category; anything undecodable becomes null."""
        messages = build_handle_missing_transaction_data_messages(description)
        response = await self._llm.call(messages, MISSING_DATA_OPTIONS)

        try:
            return MissingTransactionData.model_validate(
                parse_json_payload(response.content)
            )
        except (ValueError, SchemaError) as exc:
            logger.warning(
                "missing_data_unparseable",
                provider=response.metadata.provider,
                error=str(exc),
                raw=response.content[:200],
            )
            return MissingTransactionData()

    async def get_transaction_details(
        self,
        text: str,
        *,
        task: TransactionTask | str | None = None,
        omnibus_mode: bool = False,
    ) -> ActionResult:
        """UI-facing wrapper: never raises, reports failures as messages."""
        try:
            data = await self.extract_transaction_details(
                text, task=task, omnibus_mode=omnibus_mode
            )
        except AllProvidersFailedError as exc:
            details = ", ".join(f"{e.provider}: {e.message}" for e in exc.errors)
            return ActionResult(error=f"All LLM providers failed. Provider errors: {details}")
        except LLMTimeoutError as exc:
            return ActionResult(
                error=f"LLM request timed out for provider {exc.provider}. Please try again."
            )
        except LLMQuotaExceededError as exc:
            hint = (
                f" Please try again in {math.ceil(exc.retry_after_s)} seconds."
                if exc.retry_after_s
                else " Please try again later."
            )
            return ActionResult(error=f"LLM provider {exc.provider} quota exceeded.{hint}")
        except LLMProviderError as exc:
            return ActionResult(error=f"LLM provider {exc.provider} error: {exc.message}")
        except Exception as exc:
            logger.exception("transaction_details_failed", error=str(exc))
            return ActionResult(error=str(exc) or "An unexpected error occurred.")
        return ActionResult(data=data)
