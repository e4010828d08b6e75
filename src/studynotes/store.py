"""Local store adapter: the whole collection as one record in DuckDB.

The database holds a single key/value table.  The collection is written as
one JSON document under :data:`STORE_KEY` with an upsert, so a save either
lands completely or not at all.

Environment variables (direct kwargs take precedence):
    STUDYNOTES_DB   – path of the DuckDB file (default: in-memory)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import duckdb

from studynotes.collection import Collection
from studynotes.exceptions import ErrorCode, MalformedPayloadError, StorageError
from studynotes.parser import collection_from_data, dumps_collection

logger = logging.getLogger(__name__)

STORE_KEY = "notes-state-v1"


class LocalStore:
    """Durable single-record persistence for a :class:`Collection`."""

    def __init__(self, db_path: Path | str | None = None, *, key: str = STORE_KEY) -> None:
        self._db_path = str(db_path or os.getenv("STUDYNOTES_DB", ":memory:"))
        self._key = key
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
            self._ensure_schema()
        except duckdb.Error as exc:
            raise StorageError(
                f"Could not open local store: {exc}",
                operation="open",
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=exc,
            ) from exc

    @property
    def db_path(self) -> str:
        return self._db_path

    def _ensure_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key        VARCHAR PRIMARY KEY,
                value      JSON NOT NULL,
                updated_at TIMESTAMPTZ DEFAULT now()
            )
        """)

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self) -> Collection | None:
        """Return the stored collection, or ``None`` if absent or untrustworthy."""
        try:
            row = self.conn.execute("SELECT value FROM kv WHERE key = ?", [self._key]).fetchone()
        except duckdb.Error as exc:
            logger.error("Reading %s from %s failed: %s", self._key, self._db_path, exc)
            raise StorageError(
                f"Could not read local store: {exc}",
                operation="load",
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=exc,
            ) from exc
        if row is None:
            return None

        raw = row[0]
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
            return collection_from_data(data)
        except (json.JSONDecodeError, MalformedPayloadError) as exc:
            logger.warning("Ignoring stored record %s: %s", self._key, exc)
            return None

    def save(self, collection: Collection) -> None:
        payload = dumps_collection(collection, indent=None).decode("utf-8")
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, now())",
                [self._key, payload],
            )
        except duckdb.Error as exc:
            logger.error("Writing %s to %s failed: %s", self._key, self._db_path, exc)
            raise StorageError(
                f"Could not save to local store: {exc}",
                operation="save",
                original_error=exc,
            ) from exc

    def clear(self) -> None:
        """Drop the stored record so the next load falls back to defaults."""
        self.conn.execute("DELETE FROM kv WHERE key = ?", [self._key])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "LocalStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
