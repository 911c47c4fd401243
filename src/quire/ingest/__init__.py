"""Quire ingestion: chunking, vector backends, ingestion pipeline."""

from quire.ingest.backends import MemoryBackend, SqliteVecBackend, VectorBackend
from quire.ingest.chunker import TextChunker
from quire.ingest.pipeline import IngestionPipeline

__all__ = [
    "IngestionPipeline",
    "MemoryBackend",
    "SqliteVecBackend",
    "TextChunker",
    "VectorBackend",
]
