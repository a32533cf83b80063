"""Strict extraction of a JSON object embedded in free model text.

Small models wrap JSON in prose, code fences or trailing commentary. These
helpers find the first *balanced* ``{...}`` span (string-aware, so braces
inside quoted values do not count), decode it, and validate it against a
pydantic schema. Every failure path returns None; nothing here raises.
"""

import json
from collections.abc import Iterator
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError


ModelT = TypeVar("ModelT", bound=BaseModel)


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` substring of ``text``, left to right.

    Scanning restarts after each opening brace, so a stray ``{`` in leading
    prose does not hide a later object.
    """
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def _matching_brace(text: str, start: int) -> int | None:
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
                return i
    return None


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Decode the first balanced span of ``text`` that is a JSON object.

    Example:
        >>> extract_json_object('Sure! {"a": "}"} hope that helps')
        {'a': '}'}
    """
    if not text:
        return None

    for span in _balanced_spans(text):
        try:
            decoded = json.loads(span)
        except ValueError:
            continue
        if isinstance(decoded, dict):
            return decoded
    return None


def parse_model_reply(text: str | None, schema: type[ModelT]) -> ModelT | None:
    """Extract and validate a JSON object against ``schema``.

    Args:
        text: Raw model reply.
        schema: Pydantic model describing the expected object.

    Returns:
        A validated instance, or None when no object is found or it does
        not satisfy the schema.
    """
    decoded = extract_json_object(text)
    if decoded is None:
        return None
    try:
        return schema.model_validate(decoded)
    except ValidationError:
        return None
