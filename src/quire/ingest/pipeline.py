"""Ingestion pipeline: chunk a source, embed every chunk, store it.

Failure policy: abort per source. If any chunk of a source fails to embed or
store, the chunks already written for that source are removed and
``IngestionError`` is raised, so a source is either fully indexed or absent.
Whether to continue with the next source is the caller's decision.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from quire.errors import IngestionError
from quire.ingest.backends import VectorBackend
from quire.ingest.chunker import TextChunker
from quire.rag.llm_client import embed

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], list[float]]


class IngestionPipeline:
    """Chunk → embed → store, scoped to a notebook namespace.

    Args:
        backend: Vector backend receiving the embedded chunks.
        chunker: Character-window chunker (size/overlap from config).
        embedding_model: LiteLLM embedding model, used when *embed_fn* is None.
        embed_fn: Optional callable text → vector replacing the LiteLLM call.
    """

    def __init__(
        self,
        backend: VectorBackend,
        chunker: TextChunker | None = None,
        embedding_model: str = "openai/text-embedding-3-small",
        embed_fn: EmbedFn | None = None,
    ) -> None:
        self.backend = backend
        self.chunker = chunker or TextChunker()
        self.embed: EmbedFn = embed_fn or partial(embed, embedding_model)

    def ingest(
        self,
        notebook_id: str,
        source_name: str,
        content: str,
        *,
        source_id: str | None = None,
    ) -> int:
        """Index *content* under *notebook_id* and return the chunk count.

        Chunks previously stored for the same source key (``source_id``, or
        ``source_name`` when no id is given) are replaced, so re-ingesting a
        source never duplicates it.

        Raises:
            IngestionError: If any chunk fails to embed or store.
        """
        key = source_id or source_name
        chunks = self.chunker.chunk(notebook_id, key, source_name, content)

        replaced = self.backend.delete(notebook_id, key)
        if replaced:
            logger.debug("replaced %d chunks of %s in notebook %s", replaced, source_name, notebook_id)

        if not chunks:
            return 0

        for chunk in chunks:
            try:
                self.backend.add(chunk, self.embed(chunk.text))
            except Exception as exc:
                self.backend.delete(notebook_id, key)
                raise IngestionError(
                    f"Failed to ingest '{source_name}' at chunk {chunk.chunk_index}: {exc}"
                ) from exc

        logger.info("ingested %s into notebook %s (%d chunks)", source_name, notebook_id, len(chunks))
        return len(chunks)

    def purge(self, notebook_id: str, source_id: str | None = None) -> int:
        """Remove a source's chunks (or the whole notebook namespace) from the index."""
        removed = self.backend.delete(notebook_id, source_id)
        logger.info("removed %d chunks from notebook %s", removed, notebook_id)
        return removed
