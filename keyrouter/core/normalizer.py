"""
Message normalization.

Callers may hand over message content as plain text or as structured
parts (a text part plus file references, possibly still serialized as
JSON). Providers only take text, so every content value is flattened
before routing. Normalization never raises; content it cannot make
sense of is stringified.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Sequence


_PART_TYPES = {"text", "file"}

# Marks a value that is not valid JSON.
_NOT_JSON = object()


def _part_to_text(part: Any) -> str:
    if isinstance(part, Mapping):
        kind = part.get("type")
        if kind == "text":
            return str(part.get("text", ""))
        if kind == "file":
            location = part.get("url") or part.get("name") or part.get("path") or ""
            return f"File: {location}"
    if isinstance(part, str):
        return part
    return str(part)


def _parts_to_text(parts: Sequence[Any]) -> str:
    return "\n".join(_part_to_text(p) for p in parts)


def _is_serialized_parts(value: Any) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(p, Mapping) and p.get("type") in _PART_TYPES for p in value)
    )


def _load_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        return _NOT_JSON


def normalize_content(content: Any) -> str:
    """
    Flatten one message content value into plain text.

    Plain strings are returned unchanged unless they hold a serialized
    list of text/file parts, so already-flattened text stays as it is.
    """
    if isinstance(content, str):
        if content.lstrip().startswith("["):
            parsed = _load_json(content)
            if _is_serialized_parts(parsed):
                return _parts_to_text(parsed)
        return content
    if isinstance(content, (list, tuple)):
        return _parts_to_text(content)
    if isinstance(content, Mapping):
        return _part_to_text(content)
    if content is None:
        return ""

    if isinstance(content, (bytes, bytearray)):
        raw = bytes(content).decode("utf-8", errors="replace")
        parsed = _load_json(raw)
        return _parts_to_text(parsed) if isinstance(parsed, list) else raw

    raw = str(content)
    parsed = _load_json(raw)
    if parsed is _NOT_JSON or isinstance(parsed, dict):
        return raw
    if isinstance(parsed, list):
        return _parts_to_text(parsed)
    return "" if parsed is None else str(parsed)


def normalize_messages(messages: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Return a new message list with every content flattened to text.

    Length, order and roles are preserved; the input is not modified.
    """
    normalized: List[Dict[str, Any]] = []
    for msg in messages:
        try:
            content = normalize_content(msg.get("content"))
        except Exception:  # noqa: BLE001
            content = repr(msg.get("content"))
        normalized.append({"role": msg.get("role", "user"), "content": content})
    return normalized
