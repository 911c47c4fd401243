"""Fixed character-window chunker with overlap."""

from __future__ import annotations

from quire.db.models import Chunk


class TextChunker:
    """Split text into windows of ``chunk_size`` characters.

    Consecutive windows share ``overlap`` characters; the final window may be
    shorter. Splitting is a pure function of (content, chunk_size, overlap).
    Whitespace-only windows are omitted.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def spans(self, content: str) -> list[tuple[int, int]]:
        """Return the ``[start, end)`` character offsets of every window."""
        if not content.strip():
            return []

        spans: list[tuple[int, int]] = []
        pos = 0
        length = len(content)
        while pos < length:
            end = min(pos + self.chunk_size, length)
            if content[pos:end].strip():
                spans.append((pos, end))
            if end >= length:
                break
            pos += self.step
        return spans

    def split(self, content: str) -> list[str]:
        return [content[start:end] for start, end in self.spans(content)]

    def chunk(
        self, notebook_id: str, source_id: str, source_name: str, content: str
    ) -> list[Chunk]:
        """Split *content* into sequentially indexed Chunk objects."""
        return [
            Chunk(
                notebook_id=notebook_id,
                source_id=source_id,
                source_name=source_name,
                chunk_index=i,
                text=text,
            )
            for i, text in enumerate(self.split(content))
        ]
