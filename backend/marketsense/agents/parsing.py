"""Parsing helpers for free-text model responses."""

import json
import re
from typing import Any

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class GenerationParseError(ValueError):
    """A model response could not be parsed into the expected JSON shape."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


def unwrap_code_fence(text: str) -> str:
    """Return the body of the first ```json fence, or ``text`` stripped."""
    match = _CODE_FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def extract_json_array(text: str) -> list[str]:
    """Pull a JSON array of strings out of a response, wherever it sits."""
    body = unwrap_code_fence(text)
    match = _JSON_ARRAY.search(body)
    if not match:
        raise GenerationParseError("No JSON array found in response", raw=text)

    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise GenerationParseError(f"Invalid JSON array: {e}", raw=text) from e

    if not isinstance(items, list):
        raise GenerationParseError("Response is not a JSON array", raw=text)

    return [str(item).strip() for item in items if str(item).strip()]


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object, tolerating code fences and surrounding prose."""
    body = unwrap_code_fence(text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(body)
        if not match:
            raise GenerationParseError("No JSON object found in response", raw=text)
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise GenerationParseError(f"Invalid JSON object: {e}", raw=text) from e

    if not isinstance(data, dict):
        raise GenerationParseError("Response is not a JSON object", raw=text)
    return data
