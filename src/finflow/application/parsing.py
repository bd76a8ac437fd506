"""Tolerant decoding of JSON payloads returned by chat models."""

from __future__ import annotations

import re
from typing import Any

import orjson

# First fenced block; surrounding prose is ignored.  Any tag must end its
# line, except a bare `json` tag which may share the line with the payload.
_FENCE_RE = re.compile(
    r"```(?:[\w+-]+(?=[ \t]*\r?\n)|json)?\s*([\s\S]*?)\s*```", re.IGNORECASE
)


def strip_code_fence(content: str) -> str:
    match = _FENCE_RE.search(content)
    if match:
        return match.group(1).strip()
    return content.strip()


def parse_json_payload(content: str) -> Any:
    """Decode model output that may be wrapped in a markdown code block.

    Raises:
        ValueError: The (unwrapped) content is not valid JSON.
    """
    try:
        return orjson.loads(strip_code_fence(content))
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"Model returned invalid JSON: {exc}") from exc
