"""Tolerant JSON recovery for model output.

Models wrap JSON in Markdown fences or surround it with prose. Parsing tries,
in order: the raw text, the text with fences removed, and the first balanced
{...} object found. Anything that is not a JSON object yields {}.
"""

from __future__ import annotations

import json
import re

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def extract_first_json_object(text: str) -> str | None:
    """Return the first balanced {...} substring, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def _loads_object(text: str) -> dict | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def parse_model_json(text: str | None) -> dict:
    if not text:
        return {}

    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    unfenced = strip_fences(text)
    parsed = _loads_object(unfenced)
    if parsed is not None:
        return parsed

    candidate = extract_first_json_object(unfenced)
    if candidate is not None:
        parsed = _loads_object(candidate)
        if parsed is not None:
            return parsed
    return {}
