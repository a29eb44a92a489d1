"""Locate and parse the JSON object embedded in a model reply."""

import json
from typing import Any


class JSONExtractionError(ValueError):
    """Raised when a reply holds no parseable JSON object."""

    def __init__(self, message: str, payload: str):
        super().__init__(message)
        self.payload = payload


def find_json_object(text: str) -> str | None:
    """Return the balanced ``{...}`` span that starts at the first ``{``.

    Braces inside JSON strings (including escaped quotes) are ignored, so
    trailing prose after the object is never swallowed. Returns None when
    there is no ``{`` or the object is never closed.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for position in range(start, len(text)):
        char = text[position]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : position + 1]
    return None


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the first balanced JSON object in ``text``.

    Raises:
        JSONExtractionError: If no object is found or it is not valid JSON
    """
    span = find_json_object(text)
    if span is None:
        raise JSONExtractionError("No JSON object found in response", text)
    try:
        return json.loads(span)
    except json.JSONDecodeError as exc:
        raise JSONExtractionError(f"Invalid JSON in response: {exc}", span) from exc
