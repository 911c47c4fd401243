"""Notebook service: the exposed surface of the RAG core.

Composes ingestion, index lifecycle, retrieval/chat and transformations over
one storage collaborator. ``build_service`` wires the LiteLLM-backed
capabilities and the configured vector backend; tests pass fakes instead.
"""

from __future__ import annotations

import logging

from quire.config import QuireConfig
from quire.context import RequestContext
from quire.db.models import Note, Source
from quire.db.repository import Repository
from quire.db.vectors import ensure_vec_table, model_to_slug
from quire.index.manager import IndexManager, LoadReport
from quire.ingest.backends import MemoryBackend, SqliteVecBackend, VectorBackend
from quire.ingest.chunker import TextChunker
from quire.ingest.pipeline import EmbedFn, IngestionPipeline
from quire.rag.chat import ChatAnswer, ChatEngine, ChatMessage
from quire.rag.llm_client import LiteLLMImageGenerator, LiteLLMTextGenerator
from quire.rag.retriever import RankedChunk, Retriever
from quire.storage import ImageGenerator, TextGenerator
from quire.transform.orchestrator import (
    OrchestratorSettings,
    TransformationOrchestrator,
    TransformationRequest,
)

logger = logging.getLogger(__name__)


class NotebookService:
    """Facade over the index manager, retriever, chat engine and orchestrator."""

    def __init__(
        self,
        storage: Repository,
        pipeline: IngestionPipeline,
        index: IndexManager,
        retriever: Retriever,
        chat_engine: ChatEngine,
        orchestrator: TransformationOrchestrator,
    ) -> None:
        self.storage = storage
        self.pipeline = pipeline
        self.index = index
        self.retriever = retriever
        self.chat_engine = chat_engine
        self.orchestrator = orchestrator

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    def ensure_index_loaded(
        self, notebook_id: str, context: RequestContext | None = None
    ) -> LoadReport:
        return self.index.ensure_loaded(notebook_id, context)

    def invalidate_index(self, notebook_id: str) -> bool:
        return self.index.invalidate(notebook_id)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def search(self, notebook_id: str, query: str, top_k: int | None = None) -> list[RankedChunk]:
        """Load the notebook's index if needed, then return its top chunks for *query*."""
        self.index.ensure_loaded(notebook_id)
        return self.retriever.search(notebook_id, query, top_k)

    def chat(
        self,
        notebook_id: str,
        message: str,
        history: list[ChatMessage] | None = None,
        top_k: int | None = None,
    ) -> ChatAnswer:
        return self.chat_engine.answer(notebook_id, message, history, top_k)

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def run_transformation(
        self,
        notebook_id: str,
        request: TransformationRequest,
        context: RequestContext | None = None,
    ) -> Note:
        """Load the notebook's index if needed, then generate and store a note."""
        self.index.ensure_loaded(notebook_id, context)
        return self.orchestrator.run(notebook_id, request, context)

    # ------------------------------------------------------------------
    # Source helpers
    # ------------------------------------------------------------------

    def add_source(
        self, notebook_id: str, name: str, content: str, type: str = "text"
    ) -> Source:
        """Store a new source of *notebook_id*.

        If the notebook's index is already loaded the source is ingested right
        away; otherwise the next ``ensure_index_loaded`` picks it up.

        Raises:
            NotFoundError: If the notebook does not exist.
            IngestionError: If immediate ingestion fails. The source stays stored.
        """
        self.storage.get_notebook(notebook_id)
        source = self.storage.create_source(
            Source(notebook_id=notebook_id, name=name, content=content, type=type)
        )
        logger.info("added source %s (%s) to notebook %s", source.name, source.id, notebook_id)

        if self.index.is_loaded(notebook_id) and content.strip():
            count = self.pipeline.ingest(notebook_id, source.name, content, source_id=source.id)
            self.storage.update_source_chunk_count(source.id, count)
            source.chunk_count = count
        return source

    def remove_source(self, source_id: str) -> int:
        """Delete a source and its indexed chunks. Returns the number of chunks removed.

        Raises:
            NotFoundError: If the source does not exist.
        """
        source = self.storage.get_source(source_id)
        removed = self.pipeline.purge(source.notebook_id, source.id)
        self.storage.delete_source(source.id)
        logger.info("removed source %s from notebook %s", source.name, source.notebook_id)
        return removed


def build_backend(cfg: QuireConfig, repo: Repository) -> VectorBackend:
    if cfg.index.backend == "memory":
        return MemoryBackend()
    table = ensure_vec_table(repo.conn, model_to_slug(cfg.embedding.model), cfg.embedding.dimensions)
    return SqliteVecBackend(repo, table)


def build_service(
    cfg: QuireConfig,
    repo: Repository,
    *,
    text_generator: TextGenerator | None = None,
    image_generator: ImageGenerator | None = None,
    embed_fn: EmbedFn | None = None,
) -> NotebookService:
    """Wire a NotebookService from *cfg* over *repo*.

    Generators and the embedding function default to the LiteLLM-backed
    implementations configured in *cfg*.
    """
    text_generator = text_generator or LiteLLMTextGenerator(
        cfg.generation.model, cfg.generation.timeout
    )
    image_generator = image_generator or LiteLLMImageGenerator(
        cfg.image.model, cfg.image.output_dir, cfg.image.url_prefix, cfg.image.timeout
    )

    backend = build_backend(cfg, repo)
    pipeline = IngestionPipeline(
        backend,
        TextChunker(cfg.chunking.chunk_size, cfg.chunking.overlap),
        embedding_model=cfg.embedding.model,
        embed_fn=embed_fn,
    )
    index = IndexManager(
        repo, pipeline, mark_loaded_on_failure=cfg.index.mark_loaded_on_failure
    )
    retriever = Retriever(
        backend,
        max_top_k=cfg.retrieval.max_top_k,
        embedding_model=cfg.embedding.model,
        embed_fn=embed_fn,
    )
    chat_engine = ChatEngine(
        index,
        retriever,
        text_generator,
        model=cfg.generation.model,
        token_budget=cfg.retrieval.token_budget,
    )
    orchestrator = TransformationOrchestrator(
        repo,
        text_generator,
        image_generator,
        pipeline,
        retriever,
        OrchestratorSettings(
            text_model=cfg.generation.model,
            image_model=cfg.image.model,
            text_timeout=cfg.generation.timeout,
            image_timeout=cfg.image.timeout,
            allow_duplicate_types=cfg.transform.allow_duplicate_types,
            max_slides=cfg.transform.max_slides,
            slide_concurrency=cfg.transform.slide_concurrency,
            max_source_chars=cfg.transform.max_source_chars,
            passage_top_k=cfg.retrieval.max_top_k,
        ),
    )
    return NotebookService(repo, pipeline, index, retriever, chat_engine, orchestrator)
