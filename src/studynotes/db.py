"""NotebookDB — tabular query view over a collection.

Uses DuckDB (in-memory) as a query engine over notes and their section
placements.  Returns :mod:`polars` DataFrames.  This is where notes detached
from every section can be found again.

Usage::

    db = NotebookDB(collection)

    df = db.table_view(search="gradient")        # substring, case-insensitive
    lost = db.detached_notes()                   # notes no section references
    db.query("SELECT section_id, count(*) FROM placements GROUP BY 1")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import duckdb
import polars as pl

from studynotes.collection import HOME_ID
from studynotes.parser import html_to_text

if TYPE_CHECKING:
    from studynotes.collection import Collection

_ORDERABLE = {"id", "title", "updated_at"}


class NotebookDB:
    """In-memory DuckDB database over collection notes and placements."""

    def __init__(self, collection: "Collection") -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(collection)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, collection: "Collection") -> None:
        """(Re-)populate from *collection* (call after any mutation)."""
        self._create_schema()
        note_rows = [
            (n.id, n.title, n.content, html_to_text(n.content), n.updated_at)
            for n in collection.notes.values()
        ]
        if note_rows:
            self.conn.executemany("INSERT INTO notes VALUES (?,?,?,?,?)", note_rows)
        placement_rows = [
            (s.id, s.title, pos, nid)
            for s in collection.sections
            for pos, nid in enumerate(s.notes)
        ]
        if placement_rows:
            self.conn.executemany("INSERT INTO placements VALUES (?,?,?,?)", placement_rows)

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                id         VARCHAR PRIMARY KEY,
                title      VARCHAR,
                content    TEXT,
                text       TEXT,
                updated_at BIGINT
            )
        """)
        self.conn.execute("""
            CREATE OR REPLACE TABLE placements (
                section_id    VARCHAR,
                section_title VARCHAR,
                position      INTEGER,
                note_id       VARCHAR
            )
        """)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str) -> pl.DataFrame:
        """Run a raw SQL query and return a Polars DataFrame."""
        return self.conn.execute(sql).pl()

    def table_view(
        self,
        *,
        search: str | None = None,
        section_id: str | None = None,
        order_by: str = "title",
    ) -> pl.DataFrame:
        """Return ``id, title, updated_at`` for matching notes.

        Parameters
        ----------
        search:
            Case-insensitive substring filter on title or plain text.
        section_id:
            Only notes placed in this section, in section order.
        order_by:
            One of ``id``, ``title``, ``updated_at``; ignored when
            *section_id* is given.
        """
        params: list[object] = []
        where: list[str] = []
        if search:
            where.append("(n.title ILIKE ? OR n.text ILIKE ?)")
            pattern = f"%{search}%"
            params += [pattern, pattern]

        if section_id is not None:
            where.append("p.section_id = ?")
            params.append(section_id)
            sql = "SELECT n.id, n.title, n.updated_at FROM notes n JOIN placements p ON p.note_id = n.id"
            order = "p.position"
        else:
            sql = "SELECT n.id, n.title, n.updated_at FROM notes n"
            order = f"n.{order_by}" if order_by in _ORDERABLE else "n.title"

        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" ORDER BY {order}"
        return self.conn.execute(sql, params).pl()

    def detached_notes(self) -> pl.DataFrame:
        """Notes (other than home) that no section references."""
        return self.conn.execute(
            """
            SELECT n.id, n.title, n.updated_at
            FROM notes n
            WHERE n.id <> ?
              AND NOT EXISTS (SELECT 1 FROM placements p WHERE p.note_id = n.id)
            ORDER BY n.title
            """,
            [HOME_ID],
        ).pl()

    def section_counts(self) -> pl.DataFrame:
        """Per-section count of resolvable notes (sections with no references are omitted)."""
        return self.conn.execute(
            """
            SELECT p.section_id, p.section_title, COUNT(n.id) AS note_count
            FROM placements p
            LEFT JOIN notes n ON n.id = p.note_id
            GROUP BY p.section_id, p.section_title
            ORDER BY p.section_title
            """
        ).pl()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "NotebookDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
