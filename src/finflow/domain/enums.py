"""Domain enumerations for the extraction platform."""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Discriminator carried by every LLM provider failure."""

    TIMEOUT = "TIMEOUT"
    QUOTA = "QUOTA_EXCEEDED"
    AUTHENTICATION = "AUTHENTICATION_FAILED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    PROVIDER = "PROVIDER_ERROR"


class RetryDecision(str, enum.Enum):
    """What the client does with a provider after a failed attempt."""

    RETRY = "retry"
    ABANDON = "abandon"


class TransactionTask(str, enum.Enum):
    """Optional single-field focus for transaction extraction."""

    CATEGORIZE = "categorize"
    GET_TRANSACTION_TYPE = "get_transaction_type"
    GET_AMOUNT = "get_amount"
