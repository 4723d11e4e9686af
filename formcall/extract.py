"""Extraction of a single JSON value from noisy LLM output."""

from __future__ import annotations

import json
from typing import Optional, Type

from formcall.errors import ExtractionError
from formcall.types import JSONValue, T
from formcall.validation import to_typed

_FENCE = "```"
_JSON_FENCE = "```json"
_DELIMITERS = {"{": "}", "[": "]"}


def _strip_fences(text: str) -> str:
    """Strip a single layer of markdown code fence, if present."""
    working = text.strip()
    if working.startswith(_JSON_FENCE):
        working = working[len(_JSON_FENCE) :]
    elif working.startswith(_FENCE):
        working = working[len(_FENCE) :]
    if working.endswith(_FENCE):
        working = working[: -len(_FENCE)]
    return working.strip()


def _find_json_span(text: str) -> tuple[int, int]:
    """Locate the first top-level bracketed value in ``text``.

    The first ``{`` or ``[`` fixes which delimiter pair is counted. Brackets
    inside string literals are counted too; a span cut short that way fails
    to parse and surfaces as a retryable error.
    """
    start = -1
    open_char = close_char = ""
    for i, ch in enumerate(text):
        if ch in _DELIMITERS:
            start, open_char, close_char = i, ch, _DELIMITERS[ch]
            break
    if start == -1:
        raise ExtractionError("no JSON value found")

    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return start, i + 1
    raise ExtractionError("unmatched brackets")


def extract_json(text: Optional[str]) -> JSONValue:
    """Extract the first JSON object or array from LLM output.

    Surrounding prose and a single markdown code fence (```` ```json ```` or
    ```` ``` ````) are tolerated.

    Args:
        text: The raw LLM output.

    Returns:
        The parsed JSON tree.

    Raises:
        ExtractionError: If no JSON value is found, the brackets never
            balance, or the matched span is not valid JSON.

    Examples:
        >>> extract_json('Sure! ```json\\n{"name": "Alice", "age": 30}\\n```')
        {'name': 'Alice', 'age': 30}
    """
    working = _strip_fences(text or "")
    start, end = _find_json_span(working)
    try:
        return json.loads(working[start:end])
    except (ValueError, RecursionError) as e:
        raise ExtractionError(f"JSON parse error: {e}") from e


def extract_typed(text: Optional[str], shape: Type[T]) -> T:
    """Extract the first JSON value from LLM output and convert it to ``shape``.

    Raises:
        ExtractionError: As for :func:`extract_json`.
        ConversionError: If the JSON does not match the shape.
    """
    return to_typed(extract_json(text), shape)
