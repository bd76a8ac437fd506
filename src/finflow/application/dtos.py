"""Data Transfer Objects — Pydantic models for extraction results.

Model output is untrusted: every field except ``description`` may be
missing or null, and numeric strings are coerced where pydantic allows.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════
#  Extraction
# ═══════════════════════════════════════════════════════════════
class Transaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str
    category: str | None = None
    type: str | None = None  # income / expense
    amount: float | None = None
    date: str | None = None  # YYYY-MM-DD
    merchant: str | None = None
    payment_method: str | None = Field(None, alias="paymentMethod")
    location: str | None = None


class MissingTransactionData(BaseModel):
    amount: float | None = None
    date: str | None = None
    category: str | None = None


# ═══════════════════════════════════════════════════════════════
#  Action results
# ═══════════════════════════════════════════════════════════════
class ActionResult(BaseModel):
    """Either ``data`` or a user-facing ``error``, never both."""

    data: list[Transaction] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
