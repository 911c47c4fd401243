"""Grounded chat: retrieve, assemble context, answer with attribution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from quire.errors import GenerationError
from quire.index.manager import IndexManager
from quire.rag.assembler import CONTEXT_PREAMBLE, SourceRef, assemble_context
from quire.rag.retriever import Retriever
from quire.storage import TextGenerator

logger = logging.getLogger(__name__)

_SYSTEM = (
    "You are a research assistant answering questions about the user's notebook. "
    "Answer only from the numbered context passages and cite them as [n]. "
    "If the context does not contain the answer, say so."
)

_MAX_HISTORY_TURNS = 10


@dataclass
class ChatMessage:
    role: str  # user | assistant
    content: str


@dataclass
class ChatAnswer:
    message: str
    sources: list[SourceRef] = field(default_factory=list)


class ChatEngine:
    """Answer questions against one notebook's index."""

    def __init__(
        self,
        index: IndexManager,
        retriever: Retriever,
        generator: TextGenerator,
        model: str = "openai/gpt-4o",
        token_budget: int = 4_000,
    ) -> None:
        self._index = index
        self._retriever = retriever
        self._generator = generator
        self._model = model
        self._token_budget = token_budget

    def answer(
        self,
        notebook_id: str,
        message: str,
        history: list[ChatMessage] | None = None,
        top_k: int | None = None,
    ) -> ChatAnswer:
        """Answer *message* using the notebook's most relevant chunks.

        Raises:
            GenerationError: If text generation fails.
        """
        self._index.ensure_loaded(notebook_id)
        ranked = self._retriever.search(notebook_id, message, top_k)
        context = assemble_context(ranked, self._model, self._token_budget)

        prompt = build_chat_prompt(message, context.text, history or [])
        try:
            reply = self._generator.generate(prompt, self._model)
        except Exception as exc:
            logger.error("chat generation failed for notebook %s: %s", notebook_id, exc)
            raise GenerationError(f"Chat failed: {exc}") from exc
        return ChatAnswer(message=reply.strip(), sources=context.sources)


def build_chat_prompt(message: str, context_text: str, history: list[ChatMessage]) -> str:
    parts = [_SYSTEM, CONTEXT_PREAMBLE]
    parts.append(context_text or "<context>\n(no relevant passages found)\n</context>")
    if history:
        turns = "\n".join(
            f"{m.role.capitalize()}: {m.content}" for m in history[-_MAX_HISTORY_TURNS:]
        )
        parts.append(f"Conversation so far:\n{turns}")
    parts.append(f"User: {message}\nAssistant:")
    return "\n\n".join(parts)
