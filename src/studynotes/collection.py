"""Collection: the root document holding sections, notes and remote address.

All operations here are synchronous and in-memory.  Persistence and sync are
layered on top by :class:`studynotes.session.NotebookSession`.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from studynotes.exceptions import ErrorCode, NotFoundError, ValidationError
from studynotes.note import Note, Section, now_ms

HOME_ID = "home"
HOME_LABEL = "Home"
UNTITLED = "Untitled"
DEFAULT_SITE_TITLE = "Study Notes"
FALLBACK_SECTION_TITLE = "General"
DEFAULT_BRANCH = "gh-pages"
DEFAULT_PATH = "data/notes.json"

_ID_FALLBACK = "item"
_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SPACE_RE = re.compile(r"\s+")
_HYPHEN_RE = re.compile(r"-+")


def is_home(note_id: str) -> bool:
    """True for the reserved, undeletable home note."""
    return note_id == HOME_ID


# ---------------------------------------------------------------------------
# Id generation
# ---------------------------------------------------------------------------


def slugify(text: str) -> str:
    s = _STRIP_RE.sub("", text.lower().strip())
    s = _SPACE_RE.sub("-", s)
    return _HYPHEN_RE.sub("-", s)


def generate_id(title: str, existing: Iterable[str]) -> str:
    """Return ``slugify(title)`` made unique against *existing*.

    Tries ``base``, ``base-2``, ``base-3``, ... and returns the first
    candidate not already taken.
    """
    taken = set(existing)
    base = slugify(title) or _ID_FALLBACK
    candidate = base
    for n in itertools.count(2):
        if candidate not in taken:
            break
        candidate = f"{base}-{n}"
    if not candidate or candidate in taken:
        raise ValidationError(
            f"Could not derive a unique id from {title!r}",
            code=ErrorCode.ID_EXHAUSTED,
        )
    return candidate


def _clean_title(title: str | None, what: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} title must not be empty", details={"field": "title"})
    return cleaned


# ---------------------------------------------------------------------------
# Remote address
# ---------------------------------------------------------------------------


@dataclass
class RemoteConfig:
    """Where the collection lives remotely, plus the last known version token."""

    owner: str = ""
    repo: str = ""
    branch: str = DEFAULT_BRANCH
    path: str = DEFAULT_PATH
    credential: str = ""
    #: Version token (blob sha) seen on the last successful pull or push
    version: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.owner and self.repo and self.path)

    def with_version(self, version: str | None) -> "RemoteConfig":
        return replace(self, version=version)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "owner": self.owner,
            "repo": self.repo,
            "branch": self.branch,
            "path": self.path,
            "token": self.credential,
        }
        if self.version:
            data["sha"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RemoteConfig":
        data = data or {}
        return cls(
            owner=str(data.get("owner") or ""),
            repo=str(data.get("repo") or ""),
            branch=str(data.get("branch") or DEFAULT_BRANCH),
            path=str(data.get("path") or DEFAULT_PATH),
            credential=str(data.get("token") or data.get("credential") or ""),
            version=str(data.get("sha") or data.get("version") or "") or None,
        )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


def default_home() -> Note:
    return Note(
        id=HOME_ID,
        title=HOME_LABEL,
        content="<h1>Welcome</h1><p>Add sections and notes from the sidebar.</p>",
    )


@dataclass
class Collection:
    """Root document: site title, sections, notes, selection and remote config."""

    site_title: str = DEFAULT_SITE_TITLE
    sections: list[Section] = field(default_factory=list)
    notes: dict[str, Note] = field(default_factory=dict)
    selected_note_id: str = HOME_ID
    remote: RemoteConfig = field(default_factory=RemoteConfig)

    def __post_init__(self) -> None:
        self.ensure_invariants()

    def ensure_invariants(self) -> None:
        """Re-establish the home note and a valid selection."""
        if HOME_ID not in self.notes:
            self.notes[HOME_ID] = default_home()
        if self.selected_note_id not in self.notes:
            self.selected_note_id = HOME_ID

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_note(self, note_id: str) -> Note:
        try:
            return self.notes[note_id]
        except KeyError:
            raise NotFoundError("note", note_id) from None

    def get_section(self, section_id: str) -> Section:
        for section in self.sections:
            if section.id == section_id:
                return section
        raise NotFoundError("section", section_id)

    def section_of(self, note_id: str) -> Section | None:
        """First section referencing *note_id*, if any."""
        for section in self.sections:
            if note_id in section.notes:
                return section
        return None

    def detached_note_ids(self) -> list[str]:
        """Notes no section references (home excluded); reachable only via search."""
        placed = {nid for s in self.sections for nid in s.notes}
        return [nid for nid in self.notes if nid not in placed and not is_home(nid)]

    @property
    def selected_note(self) -> Note:
        return self.notes.get(self.selected_note_id) or self.notes[HOME_ID]

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def create_section(self, title: str) -> Section:
        cleaned = _clean_title(title, "Section")
        section = Section(id=generate_id(cleaned, (s.id for s in self.sections)), title=cleaned)
        self.sections.append(section)
        return section

    def rename_section(self, section_id: str, title: str) -> Section:
        section = self.get_section(section_id)
        section.title = _clean_title(title, "Section")
        return section

    def delete_section(self, section_id: str) -> Section:
        """Remove the section; the notes it referenced stay in ``notes``."""
        section = self.get_section(section_id)
        self.sections = [s for s in self.sections if s.id != section_id]
        return section

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def _target_section(self, section_id: str | None, create_fallback: bool) -> Section:
        if section_id is not None:
            return self.get_section(section_id)
        current = self.section_of(self.selected_note_id)
        if current is not None:
            return current
        if self.sections:
            return self.sections[0]
        if not create_fallback:
            raise ValidationError("No sections exist; create one first")
        return self.create_section(FALLBACK_SECTION_TITLE)

    def create_note(
        self,
        title: str,
        section_id: str | None = None,
        *,
        create_fallback_section: bool = True,
    ) -> Note:
        cleaned = _clean_title(title, "Note")
        note_id = generate_id(cleaned, self.notes)
        section = self._target_section(section_id, create_fallback_section)
        note = Note(
            id=note_id,
            title=cleaned,
            content=f"<h1>{cleaned}</h1>",
        )
        self.notes[note.id] = note
        section.notes.append(note.id)
        return note

    def rename_note(self, note_id: str, title: str) -> Note:
        if is_home(note_id):
            raise ValidationError(
                "The home note cannot be renamed; rename the site title instead",
                code=ErrorCode.RESERVED_ID,
                details={"id": note_id},
            )
        note = self.get_note(note_id)
        note.title = _clean_title(title, "Note")
        return note

    def set_note_content(self, note_id: str, html: str) -> Note:
        note = self.get_note(note_id)
        note.content = html
        note.updated_at = now_ms()
        return note

    def delete_note(self, note_id: str) -> Note:
        """Remove the note and every section reference to it."""
        if is_home(note_id):
            raise ValidationError(
                "The home note cannot be deleted",
                code=ErrorCode.RESERVED_ID,
                details={"id": note_id},
            )
        note = self.get_note(note_id)
        for section in self.sections:
            section.notes = [nid for nid in section.notes if nid != note_id]
        del self.notes[note_id]
        if self.selected_note_id == note_id:
            self.selected_note_id = HOME_ID
        return note

    def select_note(self, note_id: str) -> Note:
        self.selected_note_id = note_id if note_id in self.notes else HOME_ID
        return self.notes[self.selected_note_id]

    def rename_site_title(self, title: str) -> str:
        self.site_title = _clean_title(title, "Site")
        return self.site_title

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    def resolve_breadcrumb(self, note_id: str) -> str:
        if is_home(note_id):
            return HOME_LABEL
        note = self.notes.get(note_id)
        if note is None:
            return UNTITLED
        section = self.section_of(note_id)
        if section is None:
            return note.title
        return f"{section.title} / {note.title}"

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "siteTitle": self.site_title,
            "sections": [s.to_dict() for s in self.sections],
            "notes": {nid: n.to_dict() for nid, n in self.notes.items()},
            "selectedNoteId": self.selected_note_id,
            "github": self.remote.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Collection":
        """Build from the serialized shape; raises KeyError/TypeError/ValueError on bad input."""
        raw_notes = data["notes"]
        raw_sections = data["sections"]
        if not isinstance(raw_notes, dict) or not isinstance(raw_sections, list):
            raise TypeError("'notes' must be an object and 'sections' a list")
        notes = {str(nid): Note.from_dict(str(nid), raw) for nid, raw in raw_notes.items()}
        remote = data.get("github", data.get("remoteConfig"))
        return cls(
            site_title=str(data.get("siteTitle") or DEFAULT_SITE_TITLE),
            sections=[Section.from_dict(s) for s in raw_sections],
            notes=notes,
            selected_note_id=str(data.get("selectedNoteId") or HOME_ID),
            remote=RemoteConfig.from_dict(remote),
        )


def default_collection() -> Collection:
    """The bundled starter collection used when nothing is stored yet."""
    return Collection(
        site_title=DEFAULT_SITE_TITLE,
        sections=[Section(id="foundations", title="Foundations", notes=["linear-regression"])],
        notes={
            HOME_ID: default_home(),
            "linear-regression": Note(
                id="linear-regression",
                title="Linear Regression",
                content=(
                    "<h1>Linear Regression</h1>"
                    "<p>Ordinary Least Squares minimizes \\(\\sum_i (y_i - \\hat{y}_i)^2\\).</p>"
                    "<p>Closed form: \\(\\hat{\\beta} = (X^T X)^{-1} X^T y\\).</p>"
                ),
            ),
        },
    )
