"""Repository pattern for all Quire database operations.

Single interface for: notebooks, sources, notes, activity log, chunks and
vec embeddings. Vec tables are model-managed (ensure_vec_table); the
repository handles read + write.

The repository is the SQLite implementation of the ``Storage`` protocol the
core consumes (see quire.storage).
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid

from quire.db.models import (
    ActivityEntry,
    Chunk,
    Note,
    Notebook,
    Source,
    load_metadata,
)
from quire.errors import NotFoundError


class Repository:
    """Data access layer for all Quire database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. Statements are serialized with an internal
    lock so one repository can be shared by concurrent request threads.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see quire.db.schema.initialize).
        """
        self._conn = conn
        self._lock = threading.RLock()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Notebooks
    # ------------------------------------------------------------------

    def create_notebook(self, name: str, description: str = "") -> Notebook:
        notebook_id = str(uuid.uuid4())
        with self._lock:
            self._conn.execute(
                "INSERT INTO notebooks (id, name, description) VALUES (?, ?, ?)",
                (notebook_id, name, description),
            )
            self._conn.commit()
        return self.get_notebook(notebook_id)

    def get_notebook(self, notebook_id: str) -> Notebook:
        """Return a notebook by ID.

        Raises:
            NotFoundError: If no notebook has this ID.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT id, name, description, created_at FROM notebooks WHERE id = ?",
                (notebook_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Notebook '{notebook_id}' not found")
        return Notebook(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
        )

    def list_notebooks(self) -> list[Notebook]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, name, description, created_at FROM notebooks ORDER BY created_at, rowid"
            ).fetchall()
        return [
            Notebook(id=r["id"], name=r["name"], description=r["description"], created_at=r["created_at"])
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def create_source(self, source: Source) -> Source:
        """Insert a new source record and return it with id and byte size set.

        Args:
            source: Source to persist. An empty ``id`` is replaced by a UUID.
        """
        source.id = source.id or str(uuid.uuid4())
        source.byte_size = len(source.content.encode("utf-8"))
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO sources (id, notebook_id, name, type, content, byte_size, chunk_count)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    source.id,
                    source.notebook_id,
                    source.name,
                    source.type,
                    source.content,
                    source.byte_size,
                    source.chunk_count,
                ),
            )
            self._conn.commit()
        return self.get_source(source.id)

    def get_source(self, source_id: str) -> Source:
        """Return a source by ID.

        Raises:
            NotFoundError: If no source has this ID.
        """
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id = ?", (source_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Source '{source_id}' not found")
        return _row_to_source(row)

    def list_sources(self, notebook_id: str) -> list[Source]:
        """Return all sources of *notebook_id*, oldest first."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE notebook_id = ? ORDER BY created_at, rowid",
                (notebook_id,),
            ).fetchall()
        return [_row_to_source(r) for r in rows]

    def update_source_chunk_count(self, source_id: str, chunk_count: int) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE sources SET chunk_count = ? WHERE id = ?", (chunk_count, source_id)
            )
            self._conn.commit()

    def delete_source(self, source_id: str) -> None:
        """Delete a source record by ID. Does not touch chunks or embeddings."""
        with self._lock:
            self._conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
            self._conn.commit()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def create_note(self, note: Note) -> Note:
        """Insert a note; metadata is serialized to JSON at this boundary."""
        note.id = note.id or str(uuid.uuid4())
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO notes (id, notebook_id, title, content, type, source_ids, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    note.id,
                    note.notebook_id,
                    note.title,
                    note.content,
                    note.type,
                    json.dumps(note.source_ids),
                    json.dumps(note.metadata.to_dict()),
                ),
            )
            self._conn.commit()
            row = self._conn.execute(
                "SELECT created_at FROM notes WHERE id = ?", (note.id,)
            ).fetchone()
        note.created_at = row["created_at"]
        return note

    def list_notes(self, notebook_id: str) -> list[Note]:
        """Return all notes of *notebook_id*, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, notebook_id, title, content, type, source_ids, metadata, created_at
                FROM notes WHERE notebook_id = ? ORDER BY created_at DESC, rowid DESC
                """,
                (notebook_id,),
            ).fetchall()
        return [_row_to_note(r) for r in rows]

    def delete_note(self, note_id: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            self._conn.commit()

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def log_activity(self, entry: ActivityEntry) -> None:
        entry.id = entry.id or str(uuid.uuid4())
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO activity_logs
                    (id, actor, action, resource_type, resource_id, resource_name, details)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.actor,
                    entry.action,
                    entry.resource_type,
                    entry.resource_id,
                    entry.resource_name,
                    json.dumps(entry.details),
                ),
            )
            self._conn.commit()

    def list_activity(self, limit: int = 50) -> list[ActivityEntry]:
        """Return the most recent activity entries, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, actor, action, resource_type, resource_id, resource_name, details, created_at
                FROM activity_logs ORDER BY created_at DESC, rowid DESC LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            ActivityEntry(
                id=r["id"],
                actor=r["actor"],
                action=r["action"],
                resource_type=r["resource_type"],
                resource_id=r["resource_id"],
                resource_name=r["resource_name"],
                details=json.loads(r["details"]),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: Chunk) -> int:
        """Insert a chunk. Returns the new rowid."""
        with self._lock:
            cur = self._conn.execute(
                """
                INSERT INTO chunks (notebook_id, source_id, source_name, chunk_index, text)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    chunk.notebook_id,
                    chunk.source_id,
                    chunk.source_name,
                    chunk.chunk_index,
                    chunk.text,
                ),
            )
            self._conn.commit()
        chunk.rowid = cur.lastrowid
        return cur.lastrowid

    def get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        """Return a chunk by its SQLite rowid, or None if not found."""
        with self._lock:
            row = self._conn.execute(
                """
                SELECT rowid, notebook_id, source_id, source_name, chunk_index, text
                FROM chunks WHERE rowid = ?
                """,
                (rowid,),
            ).fetchone()
        return _row_to_chunk(row) if row else None

    def delete_chunk(self, rowid: int) -> None:
        """Delete a single chunk row (no embedding is touched)."""
        with self._lock:
            self._conn.execute("DELETE FROM chunks WHERE rowid = ?", (rowid,))
            self._conn.commit()

    def count_chunks(self, notebook_id: str, source_id: str | None = None) -> int:
        """Return the number of stored chunks in a notebook (optionally one source)."""
        sql = "SELECT COUNT(*) FROM chunks WHERE notebook_id = ?"
        params: tuple = (notebook_id,)
        if source_id is not None:
            sql += " AND source_id = ?"
            params = (notebook_id, source_id)
        with self._lock:
            return self._conn.execute(sql, params).fetchone()[0]

    def delete_chunks(self, notebook_id: str, source_id: str | None = None) -> int:
        """Delete chunks + their embeddings in every vec table.

        Deletes a single source's chunks when *source_id* is given, otherwise
        every chunk of the notebook. Returns the number of chunks deleted.
        """
        sql = "SELECT rowid FROM chunks WHERE notebook_id = ?"
        params: tuple = (notebook_id,)
        if source_id is not None:
            sql += " AND source_id = ?"
            params = (notebook_id, source_id)

        with self._lock:
            rowids = [r[0] for r in self._conn.execute(sql, params).fetchall()]
            if not rowids:
                return 0

            vec_tables = [
                r[0]
                for r in self._conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE 'vec_chunks_%'"
                ).fetchall()
            ]
            placeholders = ",".join("?" * len(rowids))
            for table in vec_tables:
                self._conn.execute(
                    f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                    rowids,
                )
            self._conn.execute(f"DELETE FROM chunks WHERE rowid IN ({placeholders})", rowids)  # noqa: S608
            self._conn.commit()
        return len(rowids)

    # ------------------------------------------------------------------
    # Vec embeddings
    # ------------------------------------------------------------------

    def add_embedding(
        self, table: str, rowid: int, notebook_id: str, embedding: list[float]
    ) -> None:
        """Insert an embedding into a vec table with explicit rowid = chunk rowid."""
        with self._lock:
            self._conn.execute(
                f"INSERT INTO {table}(rowid, notebook_id, embedding) VALUES (?, ?, ?)",
                (rowid, notebook_id, json.dumps(embedding)),
            )
            self._conn.commit()

    def search_vec(
        self, table: str, notebook_id: str, embedding: list[float], limit: int = 5
    ) -> list[tuple[Chunk, float]]:
        """Nearest-neighbour search within one notebook.

        Returns (chunk, cosine_distance) sorted by distance, closest first.
        """
        with self._lock:
            vec_rows = self._conn.execute(
                f"""
                SELECT rowid, distance FROM {table}
                WHERE embedding MATCH ? AND k = ? AND notebook_id = ?
                ORDER BY distance
                """,
                (json.dumps(embedding), limit, notebook_id),
            ).fetchall()

        results: list[tuple[Chunk, float]] = []
        for vec_row in vec_rows:
            chunk = self.get_chunk_by_rowid(vec_row["rowid"])
            if chunk is not None and chunk.notebook_id == notebook_id:
                results.append((chunk, vec_row["distance"]))
        return results


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

_SOURCE_COLUMNS = "id, notebook_id, name, type, content, byte_size, chunk_count, created_at"


def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        notebook_id=row["notebook_id"],
        name=row["name"],
        type=row["type"],
        content=row["content"],
        byte_size=row["byte_size"],
        chunk_count=row["chunk_count"],
        created_at=row["created_at"],
    )


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        notebook_id=row["notebook_id"],
        title=row["title"],
        content=row["content"],
        type=row["type"],
        source_ids=json.loads(row["source_ids"]),
        metadata=load_metadata(row["type"], row["metadata"]),
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["rowid"],
        notebook_id=row["notebook_id"],
        source_id=row["source_id"],
        source_name=row["source_name"],
        chunk_index=row["chunk_index"],
        text=row["text"],
    )
