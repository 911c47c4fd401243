"""Collaborator interfaces consumed by the core.

The core never depends on a concrete store or provider; anything matching
these protocols can be passed in. ``quire.db.Repository`` implements
``Storage``; ``quire.rag.llm_client`` provides LiteLLM-backed generators.
"""

from __future__ import annotations

from typing import Protocol

from quire.db.models import ActivityEntry, Note, Source


class Storage(Protocol):
    def list_sources(self, notebook_id: str) -> list[Source]: ...

    def create_source(self, source: Source) -> Source: ...

    def delete_source(self, source_id: str) -> None: ...

    def update_source_chunk_count(self, source_id: str, chunk_count: int) -> None: ...

    def create_note(self, note: Note) -> Note: ...

    def list_notes(self, notebook_id: str) -> list[Note]: ...

    def log_activity(self, entry: ActivityEntry) -> None: ...


class TextGenerator(Protocol):
    def generate(
        self, prompt: str, model: str | None = None, timeout: float | None = None
    ) -> str:
        """Return generated text for *prompt*; raise on failure."""
        ...


class ImageGenerator(Protocol):
    def generate_image(
        self, prompt: str, model: str | None = None, timeout: float | None = None
    ) -> str:
        """Return the location of the generated image; raise on failure."""
        ...
