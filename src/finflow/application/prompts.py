"""Conversation builders for the extraction flows."""

from __future__ import annotations

from finflow.shared.llm.types import Conversation, Message

_EXTRACT_SYSTEM = """You are an AI assistant that extracts key details from financial transaction descriptions.

Identify every distinct financial transaction in the provided text. For each one, extract:
- description: A concise description of the transaction.
- category: The category (e.g. groceries, dining, utilities). {null_handling}
- type: The type of transaction (income or expense).
- amount: The numerical amount. {null_handling} Read a 'k' suffix (100k) as thousands and an 'm' or 'M' suffix (1m) as millions, and always return a number.
- date: The date in ISO format (YYYY-MM-DD). {null_handling}
- merchant: The merchant or business name (e.g. "Starbucks"). {null_handling}
- paymentMethod: The payment method (e.g. credit card, cash, PayPal). {null_handling}
- location: Where the transaction took place (e.g. "New York", "Online"). {null_handling}

Return ONLY a valid JSON array of objects, one per transaction, with no markdown formatting and no additional text. If no transactions are found, return an empty array.

Example response:
[{{"description": "Coffee purchase", "category": "dining", "type": "expense", "amount": 4.50, "date": "2024-01-15", "merchant": "Starbucks", "paymentMethod": "credit card", "location": "New York"}}]"""

_NULL_IF_UNKNOWN = "If you cannot determine the value, set it to null."
_BEST_EFFORT = "Try your best to infer the value from context."

_MISSING_DATA_SYSTEM = """You are an AI assistant specializing in financial transaction analysis.

Extract the amount, date and category from a transaction description:
- amount: The numerical amount. Handle k (thousand) and m/M (million) suffixes.
- date: The date in ISO format (YYYY-MM-DD).
- category: A common financial category (groceries, dining, transportation, ...).

Only extract what can reasonably be inferred and use null for any field that cannot be determined. Return a JSON object with exactly the fields amount, date and category."""

_MISSING_DATA_USER = """Please analyze the following transaction description and extract the amount, date, and category:

Description: {description}

Return the result as a JSON object in this format:
{{"amount": <number or null>, "date": "<ISO date or null>", "category": "<string or null>"}}"""


def build_extract_transaction_details_messages(
    text: str, *, omnibus_mode: bool = False
) -> Conversation:
    null_handling = _NULL_IF_UNKNOWN if omnibus_mode else _BEST_EFFORT
    return (
        Message.system(_EXTRACT_SYSTEM.format(null_handling=null_handling)),
        Message.user(f"Please extract transaction details from the following text:\n\n{text}"),
    )


def build_handle_missing_transaction_data_messages(description: str) -> Conversation:
    return (
        Message.system(_MISSING_DATA_SYSTEM),
        Message.user(_MISSING_DATA_USER.format(description=description)),
    )
