"""Collection (de)serialization and HTML text extraction."""

from __future__ import annotations

import html
import json
import re
from typing import Any

from studynotes.collection import Collection
from studynotes.exceptions import MalformedPayloadError

_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_END_RE = re.compile(r"</(p|h[1-6]|li|div|blockquote|pre)>|<br\s*/?>", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def has_collection_shape(data: Any) -> bool:
    """Best-effort check used before trusting a stored or imported record."""
    return isinstance(data, dict) and "notes" in data and "sections" in data


def collection_from_data(data: Any) -> Collection:
    """Build a :class:`Collection` from already-decoded JSON data."""
    if not has_collection_shape(data):
        raise MalformedPayloadError("Invalid file: expected 'notes' and 'sections'.")
    try:
        return Collection.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as exc:
        raise MalformedPayloadError(f"Invalid file: {exc}") from exc


def loads_collection(payload: bytes | str) -> Collection:
    """Parse a serialized collection (UTF-8 JSON)."""
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayloadError(f"Invalid JSON: {exc}") from exc
    return collection_from_data(data)


def dumps_collection(collection: Collection, *, indent: int | None = 2) -> bytes:
    """Serialize *collection* to UTF-8 JSON bytes (non-ASCII kept verbatim)."""
    return json.dumps(collection.to_dict(), indent=indent, ensure_ascii=False).encode("utf-8")


def html_to_text(markup: str) -> str:
    """Plain text of an editor HTML fragment, for search and previews."""
    text = _BLOCK_END_RE.sub(" ", markup)
    text = html.unescape(_TAG_RE.sub("", text))
    return _WS_RE.sub(" ", text).strip()
