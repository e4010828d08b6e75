"""Remote sync backends."""

from studynotes.sync.base import RemoteObject, SyncBackend
from studynotes.sync.github import GitHubContentsClient

__all__ = ["RemoteObject", "SyncBackend", "GitHubContentsClient"]
