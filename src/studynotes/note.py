"""Core Note and Section dataclasses."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _timestamp(value: Any) -> int:
    # bools are ints; inf/nan cannot become an int
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return now_ms()
    if isinstance(value, float) and not math.isfinite(value):
        return now_ms()
    return int(value)


@dataclass
class Note:
    """A single rich-text note in the collection."""

    id: str
    title: str
    #: HTML markup produced by the editor
    content: str = ""
    updated_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, note_id: str, data: dict[str, Any]) -> "Note":
        updated = data.get("updatedAt")
        return cls(
            id=note_id,
            title=str(data.get("title") or "Untitled"),
            content=str(data.get("content") or ""),
            updated_at=_timestamp(updated),
        )


@dataclass
class Section:
    """A named, ordered group of note references."""

    id: str
    title: str
    #: Ordered note ids; the notes themselves live in the collection
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "notes": list(self.notes)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Section":
        refs = data.get("notes") or []
        if not isinstance(refs, list):
            raise TypeError(f"section {data['id']!r}: 'notes' must be a list")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or data["id"]),
            notes=[str(n) for n in refs],
        )
