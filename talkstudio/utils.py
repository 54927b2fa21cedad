"""Shared utility functions used across Talk Studio modules."""
from __future__ import annotations

import json
import math
import re
from datetime import datetime
from typing import Any

# Average speaking rate, words per minute.
WORDS_PER_MINUTE = 130

_MISSING = object()
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Pull the outermost ``{...}`` block out of free text (code fences, chatter)."""
    m = _JSON_OBJECT_RE.search(text or "")
    if not m:
        return None
    parsed = json_parse(m.group(0), None)
    return parsed if isinstance(parsed, dict) else None


def word_count(text: str | None) -> int:
    return len((text or "").split())


def estimate_minutes(text: str | None) -> int:
    return math.ceil(word_count(text) / WORDS_PER_MINUTE)


def iso(dt: datetime | None) -> str:
    return dt.isoformat() if dt else ""
