"""Parsing helpers for JSON replies from the AI service."""

import json
import re
from typing import Any

from backend.forge.errors import MalformedResponseError

_FENCE_OPEN_RE = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    cleaned = _FENCE_OPEN_RE.sub("", raw)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def parse_json_object(raw: str) -> dict[str, Any]:
    """Decode a reply that must be a single JSON object.

    Raises:
        MalformedResponseError: Reply is not valid JSON or not an object
    """
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f"Response is not valid JSON: {e.msg}", {"position": e.pos}
        ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(data).__name__}",
        )
    return data
