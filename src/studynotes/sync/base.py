"""Remote backend protocol for whole-collection sync."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from studynotes.collection import RemoteConfig


@dataclass(frozen=True)
class RemoteObject:
    """Content of the remote blob together with its version token."""

    content: bytes
    version: str


@runtime_checkable
class SyncBackend(Protocol):
    """Versioned blob store with compare-and-swap writes.

    The session only talks to this interface, so tests and alternative
    hosts can stand in for the GitHub client.
    """

    def fetch(self, address: RemoteConfig) -> RemoteObject | None:
        """Return the blob at *address*, or ``None`` when nothing is stored there."""
        ...

    def put(
        self,
        address: RemoteConfig,
        content: bytes,
        message: str,
        expected_version: str | None = None,
    ) -> str:
        """Write *content*; return the new version token.

        Raises :class:`~studynotes.exceptions.VersionConflictError` when
        *expected_version* no longer matches the stored version.
        """
        ...
