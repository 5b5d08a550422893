"""Helpers for reading structured output out of model replies."""

from __future__ import annotations

import json
from typing import Iterator


def _strip_fences(text: str) -> str:
    lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
    return "\n".join(lines)


def _json_candidates(raw: str) -> Iterator[str]:
    text = raw.strip()
    yield _strip_fences(text) if "```" in text else text

    # Outermost braces, for replies that wrap the object in prose
    start = text.find("{")
    end = text.rfind("}")
    if 0 <= start < end:
        yield text[start:end + 1]


def parse_llm_json(raw: str) -> dict:
    """Return the first JSON object found in a model reply, or {}.

    Fenced blocks are unwrapped before parsing. JSON that is not an object
    (a list, a bare string) counts as no JSON.
    """
    if not raw:
        return {}

    for candidate in _json_candidates(raw):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return {}
