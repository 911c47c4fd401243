"""Dense retriever: top-K chunks of one notebook by cosine similarity.

Ordering is score descending; equal scores are ordered by
(source_name, chunk_index) so a fixed index and query always give the same
result list.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from functools import partial

from quire.errors import ValidationError
from quire.ingest.backends import VectorBackend
from quire.ingest.pipeline import EmbedFn
from quire.rag.llm_client import embed


@dataclass
class RankedChunk:
    """A retrieved chunk with its attribution and relevance score.

    Attributes:
        text: Chunk text.
        source_name: Name of the source the chunk came from.
        source_id: Source key the chunk was indexed under.
        chunk_index: 0-based position of the chunk within its source.
        score: Cosine similarity to the query (higher = more relevant).
    """

    text: str
    source_name: str
    source_id: str
    chunk_index: int
    score: float


class Retriever:
    """Rank a notebook's chunks against a query.

    Args:
        backend: Vector backend shared with the ingestion pipeline.
        max_top_k: Upper bound on results per query; also the default.
        embedding_model: LiteLLM embedding model, must match ingestion.
        embed_fn: Optional callable text → vector replacing the LiteLLM call.
    """

    def __init__(
        self,
        backend: VectorBackend,
        max_top_k: int = 5,
        embedding_model: str = "openai/text-embedding-3-small",
        embed_fn: EmbedFn | None = None,
    ) -> None:
        self.backend = backend
        self.max_top_k = max_top_k
        self.embed: EmbedFn = embed_fn or partial(embed, embedding_model)

    def search(
        self,
        notebook_id: str,
        query: str,
        top_k: int | None = None,
        source_ids: Collection[str] | None = None,
    ) -> list[RankedChunk]:
        """Return up to *top_k* chunks of *notebook_id*, best first.

        *top_k* defaults to and is clamped at ``max_top_k``. With *source_ids*,
        only chunks of those sources are returned; the notebook is scanned
        past the first *top_k* hits so other sources cannot crowd them out.

        Raises:
            ValidationError: If *top_k* is not positive.
        """
        if top_k is None:
            top_k = self.max_top_k
        if top_k < 1:
            raise ValidationError(f"top_k must be >= 1, got {top_k}")
        top_k = min(top_k, self.max_top_k)

        if not query.strip():
            return []

        limit = top_k
        if source_ids is not None:
            limit = self.backend.count(notebook_id)
            if not limit or not source_ids:
                return []

        results = self.backend.search(notebook_id, self.embed(query), limit)
        ranked = [
            RankedChunk(
                text=chunk.text,
                source_name=chunk.source_name,
                source_id=chunk.source_id,
                chunk_index=chunk.chunk_index,
                score=score,
            )
            for chunk, score in results
            if chunk.notebook_id == notebook_id
            and (source_ids is None or chunk.source_id in source_ids)
        ]
        ranked.sort(key=lambda r: (-r.score, r.source_name, r.chunk_index))
        return ranked[:top_k]
