"""Vector backends: where embedded chunks live and how they are ranked.

Every backend namespaces chunks by notebook id and scores results as cosine
similarity (higher = more relevant).
"""

from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod

from quire.db.models import Chunk
from quire.db.repository import Repository
from quire.db.vectors import MAX_KNN_K


class VectorBackend(ABC):
    """Storage + similarity search for embedded chunks."""

    @abstractmethod
    def add(self, chunk: Chunk, embedding: list[float]) -> None:
        """Store *chunk* with its *embedding* in the chunk's notebook namespace."""

    @abstractmethod
    def delete(self, notebook_id: str, source_id: str | None = None) -> int:
        """Remove one source's chunks, or the whole notebook namespace if no source."""

    @abstractmethod
    def search(
        self, notebook_id: str, embedding: list[float], limit: int
    ) -> list[tuple[Chunk, float]]:
        """Return up to *limit* (chunk, similarity) pairs from *notebook_id* only."""

    @abstractmethod
    def count(self, notebook_id: str, source_id: str | None = None) -> int:
        """Number of stored chunks in a notebook (optionally one source)."""


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 0.0
    return dot / norm


class MemoryBackend(VectorBackend):
    """Process-local backend. Contents vanish with the process."""

    def __init__(self) -> None:
        self._items: dict[str, list[tuple[Chunk, list[float]]]] = {}
        self._lock = threading.Lock()

    def add(self, chunk: Chunk, embedding: list[float]) -> None:
        with self._lock:
            self._items.setdefault(chunk.notebook_id, []).append((chunk, list(embedding)))

    def delete(self, notebook_id: str, source_id: str | None = None) -> int:
        with self._lock:
            items = self._items.get(notebook_id, [])
            if source_id is None:
                self._items.pop(notebook_id, None)
                return len(items)
            kept = [item for item in items if item[0].source_id != source_id]
            self._items[notebook_id] = kept
            return len(items) - len(kept)

    def search(
        self, notebook_id: str, embedding: list[float], limit: int
    ) -> list[tuple[Chunk, float]]:
        with self._lock:
            items = list(self._items.get(notebook_id, []))
        scored = [(chunk, cosine_similarity(embedding, vec)) for chunk, vec in items]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:limit]

    def count(self, notebook_id: str, source_id: str | None = None) -> int:
        with self._lock:
            items = self._items.get(notebook_id, [])
            if source_id is None:
                return len(items)
            return sum(1 for chunk, _ in items if chunk.source_id == source_id)


class SqliteVecBackend(VectorBackend):
    """Local relational backend: ``chunks`` table plus a sqlite-vec vec0 table.

    Args:
        repo: Open Repository.
        vec_table: Name returned by ``ensure_vec_table()`` for the embedding model.
    """

    def __init__(self, repo: Repository, vec_table: str) -> None:
        self._repo = repo
        self._vec_table = vec_table

    def add(self, chunk: Chunk, embedding: list[float]) -> None:
        rowid = self._repo.add_chunk(chunk)
        try:
            self._repo.add_embedding(self._vec_table, rowid, chunk.notebook_id, embedding)
        except Exception:
            # A chunk row without an embedding would never be retrievable.
            self._repo.delete_chunk(rowid)
            raise

    def delete(self, notebook_id: str, source_id: str | None = None) -> int:
        return self._repo.delete_chunks(notebook_id, source_id)

    def search(
        self, notebook_id: str, embedding: list[float], limit: int
    ) -> list[tuple[Chunk, float]]:
        # vec0 reports cosine distance; convert to similarity.
        return [
            (chunk, 1.0 - distance)
            for chunk, distance in self._repo.search_vec(
                self._vec_table, notebook_id, embedding, min(limit, MAX_KNN_K)
            )
        ]

    def count(self, notebook_id: str, source_id: str | None = None) -> int:
        return self._repo.count_chunks(notebook_id, source_id)
