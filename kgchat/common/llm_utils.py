"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Any


def strip_code_fences(raw: str) -> str:
    """Drop markdown code-fence lines (```json ... ```) around a payload."""
    text = raw.strip()
    if "```" not in text:
        return text
    lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
    return "\n".join(lines).strip()


def load_json_block(raw: str) -> Any:
    """Decode the JSON payload of a tagged block in an LLM response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Direct json.loads on the raw string

    Raises:
        json.JSONDecodeError: when neither attempt succeeds
    """
    try:
        return json.loads(strip_code_fences(raw))
    except json.JSONDecodeError:
        return json.loads(raw)
