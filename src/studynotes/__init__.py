"""Study-notes collection store with optimistic-concurrency sync."""

from studynotes.collection import (
    HOME_ID,
    Collection,
    RemoteConfig,
    default_collection,
    generate_id,
    is_home,
    slugify,
)
from studynotes.config import Settings, load_settings
from studynotes.db import NotebookDB
from studynotes.note import Note, Section
from studynotes.parser import dumps_collection, loads_collection
from studynotes.session import NotebookSession, SyncResult, SyncState
from studynotes.store import LocalStore
from studynotes.sync import GitHubContentsClient, RemoteObject, SyncBackend

__all__ = [
    "HOME_ID",
    "Collection",
    "RemoteConfig",
    "default_collection",
    "generate_id",
    "is_home",
    "slugify",
    "Settings",
    "load_settings",
    "NotebookDB",
    "Note",
    "Section",
    "dumps_collection",
    "loads_collection",
    "NotebookSession",
    "SyncResult",
    "SyncState",
    "LocalStore",
    "GitHubContentsClient",
    "RemoteObject",
    "SyncBackend",
]
