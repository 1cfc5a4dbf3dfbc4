from __future__ import annotations

import json
import re
from typing import Any

from marketlens.errors import LLMResponseError

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def extract_json_object(raw_text: str) -> dict[str, Any]:
    """Pull the single JSON object out of a model reply.

    Markdown fences may surround the object or appear mid-reply; prose before
    and after the object is ignored.
    """
    text = (raw_text or "").strip()
    if not text:
        raise LLMResponseError("empty model response")

    fenced = _FENCED_BLOCK.search(text)
    if fenced and "{" in fenced.group(1):
        text = fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise LLMResponseError("no JSON object found in model response")

    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"invalid JSON in model response: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise LLMResponseError("model response JSON is not an object")
    return parsed
