"""NotebookSession: owns the collection and coordinates store and remote.

Every mutating call runs as a transaction: the collection is snapshotted,
mutated, and written to the local store.  If anything fails the snapshot
is restored, so callers never observe a half-applied change.

Sync flow
---------
``pull``:  IDLE → FETCHING → APPLYING → DONE      (or FAILED; IDLE when absent)
``push``:  IDLE → CHECKING → WRITING  → DONE      (or CONFLICT / FAILED)

Pull and push replace one side wholesale.  There is no merge: a push whose
version token is stale ends in CONFLICT and the caller decides what to do
(usually pull, then redo the edit).
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from studynotes.collection import Collection, RemoteConfig, default_collection
from studynotes.db import NotebookDB
from studynotes.exceptions import NotebookError, StorageError, VersionConflictError
from studynotes.note import Note, Section
from studynotes.parser import dumps_collection, loads_collection
from studynotes.store import LocalStore
from studynotes.sync.github import GitHubContentsClient

if TYPE_CHECKING:
    import httpx

    from studynotes.config import Settings
    from studynotes.sync.base import SyncBackend

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "notes-export.json"

Listener = Callable[[str, "NotebookSession"], None]


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    APPLYING = "applying"
    CHECKING = "checking"
    WRITING = "writing"
    DONE = "done"
    CONFLICT = "conflict"
    FAILED = "failed"


_BUSY = {SyncState.FETCHING, SyncState.APPLYING, SyncState.CHECKING, SyncState.WRITING}


@dataclass(frozen=True)
class SyncResult:
    state: SyncState
    message: str
    version: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is SyncState.DONE


class NotebookSession:
    """Single owner of the in-memory collection."""

    def __init__(
        self,
        collection: Collection,
        store: LocalStore,
        client: "SyncBackend | None" = None,
    ) -> None:
        self._collection = collection
        self._store = store
        self._client = client
        self._state = SyncState.IDLE
        self._status = ""
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        store: LocalStore,
        client: "SyncBackend | None" = None,
        *,
        remote: RemoteConfig | None = None,
        pull_on_start: bool = False,
    ) -> "NotebookSession":
        """Defaults → local record → optional remote pull.

        *remote* fills in the remote address when the loaded collection has
        none configured yet.
        """
        collection = store.load()
        if collection is None:
            logger.info("No stored collection in %s; starting from defaults", store.db_path)
            collection = default_collection()
        if remote is not None and not collection.remote.is_configured:
            collection.remote = remote
        session = cls(collection, store, client)
        if pull_on_start and client is not None and collection.remote.is_configured:
            session.pull()
        return session

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        transport: "httpx.BaseTransport | None" = None,
    ) -> "NotebookSession":
        store = LocalStore(settings.db_path)
        client = GitHubContentsClient(settings.api_url, timeout=settings.timeout, transport=transport)
        return cls.open(
            store,
            client,
            remote=settings.remote_config(),
            pull_on_start=settings.pull_on_start,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def status(self) -> str:
        return self._status

    @property
    def sync_state(self) -> SyncState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state in _BUSY

    def breadcrumb(self, note_id: str | None = None) -> str:
        return self._collection.resolve_breadcrumb(note_id or self._collection.selected_note_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Collection]:
        snapshot = copy.deepcopy(self._collection)
        try:
            yield self._collection
            self._store.save(self._collection)
        except NotebookError as exc:
            self._collection = snapshot
            self._status = str(exc)
            logger.warning("%s rolled back: %s", action, exc)
            raise
        self._notify("changed")

    def _replace(self, incoming: Collection) -> None:
        """Persist *incoming* first, then swap it in; a failed save changes nothing."""
        self._store.save(incoming)
        self._collection = incoming
        self._notify("replaced")

    # ------------------------------------------------------------------
    # Model operations
    # ------------------------------------------------------------------

    def open_note(self, note_id: str) -> Note:
        with self._transaction("open note") as c:
            return c.select_note(note_id)

    def create_section(self, title: str) -> Section:
        with self._transaction("create section") as c:
            return c.create_section(title)

    def rename_section(self, section_id: str, title: str) -> Section:
        with self._transaction("rename section") as c:
            return c.rename_section(section_id, title)

    def delete_section(self, section_id: str) -> Section:
        with self._transaction("delete section") as c:
            return c.delete_section(section_id)

    def create_note(
        self,
        title: str,
        section_id: str | None = None,
        *,
        create_fallback_section: bool = True,
    ) -> Note:
        """Create a note and select it."""
        with self._transaction("create note") as c:
            note = c.create_note(title, section_id, create_fallback_section=create_fallback_section)
            c.select_note(note.id)
            return note

    def rename_note(self, note_id: str, title: str) -> Note:
        with self._transaction("rename note") as c:
            return c.rename_note(note_id, title)

    def set_note_content(self, note_id: str, html: str) -> Note:
        with self._transaction("save note") as c:
            return c.set_note_content(note_id, html)

    def delete_note(self, note_id: str) -> Note:
        with self._transaction("delete note") as c:
            return c.delete_note(note_id)

    def rename_site_title(self, title: str) -> str:
        with self._transaction("rename site") as c:
            return c.rename_site_title(title)

    def set_remote(
        self,
        *,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
        path: str | None = None,
        credential: str | None = None,
    ) -> RemoteConfig:
        """Update the remote address; moving to another file forgets the known version."""
        with self._transaction("set remote") as c:
            old = c.remote
            new = replace(
                old,
                owner=(owner if owner is not None else old.owner).strip(),
                repo=(repo if repo is not None else old.repo).strip(),
                branch=(branch or old.branch).strip(),
                path=(path or old.path).strip(),
                credential=(credential if credential is not None else old.credential).strip(),
            )
            if (new.owner, new.repo, new.branch, new.path) != (old.owner, old.repo, old.branch, old.path):
                new = new.with_version(None)
            c.remote = new
            return new

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str) -> list[Note]:
        """Substring search over titles and note text."""
        with NotebookDB(self._collection) as db:
            ids = db.table_view(search=query)["id"].to_list()
        return [self._collection.notes[i] for i in ids]

    def detached_notes(self) -> list[Note]:
        return [self._collection.notes[i] for i in self._collection.detached_note_ids()]

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def _set_state(self, state: SyncState, status: str) -> None:
        self._state = state
        self._status = status
        logger.info("sync %s: %s", state.value, status)

    def _finish(self, state: SyncState, status: str, version: str | None = None) -> SyncResult:
        self._set_state(state, status)
        return SyncResult(state, status, version)

    def _refuse(self, address: RemoteConfig) -> SyncResult | None:
        if self.busy:
            return SyncResult(self._state, "A sync is already in progress.")
        if self._client is None:
            return self._finish(SyncState.FAILED, "No remote backend configured.")
        if not address.is_configured:
            return self._finish(SyncState.FAILED, "Remote repository is not configured.")
        return None

    def pull(self, address: RemoteConfig | None = None) -> SyncResult:
        """Replace the local collection with the remote one."""
        address = address or self._collection.remote
        refused = self._refuse(address)
        if refused is not None:
            return refused
        try:
            return self._pull(address)
        except Exception as exc:  # noqa: BLE001
            logger.exception("pull from %s failed unexpectedly", address.path)
            return self._finish(SyncState.FAILED, f"Pull failed: {exc}")

    def _pull(self, address: RemoteConfig) -> SyncResult:
        assert self._client is not None
        self._set_state(SyncState.FETCHING, "Loading…")
        try:
            remote = self._client.fetch(address)
            if remote is None:
                return self._finish(SyncState.IDLE, "Nothing to pull: no file found at that path.")
            incoming = loads_collection(remote.content)
            self._set_state(SyncState.APPLYING, "Applying remote collection…")
            incoming.remote = address.with_version(remote.version)
            self._replace(incoming)
        except NotebookError as exc:
            logger.error("pull from %s failed: %s", address.path, exc)
            return self._finish(SyncState.FAILED, str(exc))
        return self._finish(SyncState.DONE, "Loaded from GitHub.", remote.version)

    def push(self, *, force: bool = False, address: RemoteConfig | None = None) -> SyncResult:
        """Replace the remote collection with the local one.

        The version remembered from the last pull/push is the expected
        version.  If the remote has moved on since then the push stops with
        CONFLICT.  *force* skips that check and writes against whatever
        version is current.
        """
        address = address or self._collection.remote
        refused = self._refuse(address)
        if refused is not None:
            return refused
        try:
            return self._push(address, force)
        except Exception as exc:  # noqa: BLE001
            logger.exception("push to %s failed unexpectedly", address.path)
            return self._finish(SyncState.FAILED, f"Push failed: {exc}")

    def _push(self, address: RemoteConfig, force: bool) -> SyncResult:
        assert self._client is not None
        self._set_state(SyncState.CHECKING, "Checking remote…")
        try:
            current = self._client.fetch(address)
            remote_version = current.version if current else None
            known = address.version
            if known and not force and remote_version != known:
                logger.warning("push refused: remote at %s, last synced %s", remote_version, known)
                return self._finish(
                    SyncState.CONFLICT,
                    "Conflict: the remote changed since the last sync; pull before pushing.",
                )
            expected = remote_version if force or not known else known

            outgoing = copy.deepcopy(self._collection)
            outgoing.remote = replace(address, credential="")
            payload = dumps_collection(outgoing)

            self._set_state(SyncState.WRITING, "Saving…")
            stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
            message = f"Update {PurePosixPath(address.path).name} ({stamp})"
            new_version = self._client.put(address, payload, message, expected)
        except VersionConflictError as exc:
            return self._finish(SyncState.CONFLICT, f"Conflict: {exc}")
        except NotebookError as exc:
            logger.error("push to %s failed: %s", address.path, exc)
            return self._finish(SyncState.FAILED, str(exc))

        previous = self._collection.remote
        self._collection.remote = address.with_version(new_version)
        try:
            self._store.save(self._collection)
        except StorageError as exc:
            self._collection.remote = previous
            return self._finish(
                SyncState.FAILED,
                f"Saved to GitHub, but the new version could not be stored locally: {exc}",
                new_version,
            )
        self._notify("changed")
        return self._finish(SyncState.DONE, "Saved to GitHub.", new_version)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_bytes(self) -> bytes:
        return dumps_collection(self._collection)

    def export_file(self, path: Path | str | None = None) -> Path:
        target = Path(path) if path is not None else Path(EXPORT_FILENAME)
        try:
            target.write_bytes(self.export_bytes())
        except OSError as exc:
            raise StorageError(f"Export failed: {exc}", operation="export", original_error=exc) from exc
        return target

    def import_bytes(self, data: bytes) -> SyncResult:
        """Replace the collection with a previously exported payload."""
        if self.busy:
            return SyncResult(self._state, "A sync is already in progress.")
        try:
            self._replace(loads_collection(data))
        except NotebookError as exc:
            self._status = f"Import failed: {exc}"
            logger.warning(self._status)
            return SyncResult(SyncState.FAILED, self._status)
        self._status = "Imported."
        return SyncResult(SyncState.DONE, self._status)

    def import_file(self, path: Path | str) -> SyncResult:
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            self._status = f"Import failed: {exc}"
            return SyncResult(SyncState.FAILED, self._status)
        return self.import_bytes(data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._store.close()
        close = getattr(self._client, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "NotebookSession":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
