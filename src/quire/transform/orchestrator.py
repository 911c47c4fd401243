"""Transformation orchestrator: sources → prompt → text → images → note.

Per request:
  1. Validate       request shape; duplicate-type conflict (if disallowed)
  2. Resolve        requested source ids (or all); empty → ValidationError
  3. Primary        text generation; failure is fatal, nothing persisted
  4. Secondary      per handler kind (see quire.transform.handlers); non-fatal
  5. Persist        one Note with its type-specific metadata
  6. Activity log   failure is logged, never raised

A cancelled or expired RequestContext aborts before anything is persisted.
Image calls already made are not undone.
An insight source is removed again if its note cannot be stored.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from quire.config import MAX_SLIDES
from quire.context import RequestContext
from quire.db.models import (
    ActivityEntry,
    ImageMetadata,
    InsightMetadata,
    Note,
    SlideDeckMetadata,
    Source,
    TextMetadata,
    TransformationType,
)
from quire.errors import ConflictError, GenerationError, IngestionError, ValidationError
from quire.ingest.pipeline import IngestionPipeline
from quire.rag.retriever import Retriever
from quire.storage import ImageGenerator, Storage, TextGenerator
from quire.transform.handlers import HandlerKind, TransformationHandler, get_handler
from quire.transform.prompts import (
    FORMAT_HINTS,
    LENGTH_HINTS,
    build_infograph_image_prompt,
    build_slide_image_prompt,
    build_transformation_prompt,
)
from quire.transform.slides import Slide, parse_slides

logger = logging.getLogger(__name__)

INSIGHT_SOURCE_NAME = "Insight Report"


@dataclass
class TransformationRequest:
    """What to generate and from which sources.

    Attributes:
        type: Transformation type (enum value or its string form).
        prompt: Optional custom instruction appended to the type's prompt.
        source_ids: Sources to use; empty means every source of the notebook.
        length: 'short' | 'medium' | 'long'.
        format: Output format hint ('markdown' or 'text').
        actor: Who asked, recorded in the activity log.
    """

    type: TransformationType | str
    prompt: str = ""
    source_ids: list[str] = field(default_factory=list)
    length: str = "medium"
    format: str = "markdown"
    actor: str = ""


@dataclass
class OrchestratorSettings:
    text_model: str | None = None
    image_model: str | None = None
    text_timeout: float = 300.0
    image_timeout: float = 3_600.0
    allow_duplicate_types: bool = True
    max_slides: int = MAX_SLIDES
    slide_concurrency: int = 1
    max_source_chars: int = 20_000
    passage_top_k: int = 5


class TransformationOrchestrator:
    """Run transformations for notebooks.

    Args:
        storage: Source / note / activity collaborator.
        text_generator: Primary text capability.
        image_generator: Image capability for image-producing types.
        pipeline: Ingestion pipeline used by feedback types.
        retriever: Optional retriever; when given, a custom prompt pulls its
            most relevant passages into the primary prompt.
        settings: Models, timeouts and limits.
    """

    def __init__(
        self,
        storage: Storage,
        text_generator: TextGenerator,
        image_generator: ImageGenerator,
        pipeline: IngestionPipeline,
        retriever: Retriever | None = None,
        settings: OrchestratorSettings | None = None,
    ) -> None:
        self._storage = storage
        self._text = text_generator
        self._images = image_generator
        self._pipeline = pipeline
        self._retriever = retriever
        self._settings = settings or OrchestratorSettings()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(
        self,
        notebook_id: str,
        request: TransformationRequest,
        context: RequestContext | None = None,
    ) -> Note:
        """Generate and persist a note for *request*.

        Raises:
            ValidationError: Unknown type, bad length, or no sources to use.
            ConflictError: A note of this type exists and duplicates are disallowed.
            GenerationError: Primary text generation failed.
            TransformationCancelled: *context* was cancelled or expired.
        """
        context = context or RequestContext()
        handler = get_handler(request.type)
        self._validate(notebook_id, request, handler)
        sources = self._resolve_sources(notebook_id, request.source_ids)
        source_ids = [s.id for s in sources]

        context.check()
        text = self._generate_text(notebook_id, handler, request, sources, context)

        context.check()
        content = "" if handler.image_only else text
        if handler.kind is HandlerKind.SINGLE_IMAGE:
            metadata: TextMetadata = self._render_single_image(text, request, context)
        elif handler.kind is HandlerKind.SLIDE_DECK:
            metadata = self._render_slide_deck(text, request, context)
            context.check()
        elif handler.kind is HandlerKind.FEEDBACK:
            metadata = InsightMetadata(
                length=request.length,
                format=request.format,
                insight_source_id=self._feed_back(notebook_id, text, source_ids),
            )
        else:
            metadata = TextMetadata(length=request.length, format=request.format)

        try:
            note = self._storage.create_note(
                Note(
                    notebook_id=notebook_id,
                    title=handler.title,
                    content=content,
                    type=handler.type.value,
                    source_ids=source_ids,
                    metadata=metadata,
                )
            )
        except Exception:
            if isinstance(metadata, InsightMetadata) and metadata.insight_source_id:
                self._discard_insight(notebook_id, metadata.insight_source_id)
            raise
        logger.info("created %s note %s in notebook %s", handler.type.value, note.id, notebook_id)

        self._log_activity(notebook_id, note, request, len(source_ids))
        return note

    # ------------------------------------------------------------------
    # 1-2. Validation and source resolution
    # ------------------------------------------------------------------

    def _validate(
        self, notebook_id: str, request: TransformationRequest, handler: TransformationHandler
    ) -> None:
        if request.length not in LENGTH_HINTS:
            raise ValidationError(
                f"Unknown length '{request.length}'. Use one of: {', '.join(LENGTH_HINTS)}"
            )
        if request.format not in FORMAT_HINTS:
            raise ValidationError(
                f"Unknown format '{request.format}'. Use one of: {', '.join(FORMAT_HINTS)}"
            )
        if self._settings.allow_duplicate_types:
            return
        for note in self._storage.list_notes(notebook_id):
            if note.type == handler.type.value:
                raise ConflictError(
                    f"Notebook {notebook_id} already has a '{handler.type.value}' note "
                    "and duplicate types are not allowed"
                )

    def _resolve_sources(self, notebook_id: str, source_ids: list[str]) -> list[Source]:
        sources = self._storage.list_sources(notebook_id)
        if source_ids:
            wanted = set(source_ids)
            sources = [s for s in sources if s.id in wanted]
        if not sources:
            raise ValidationError("No sources available for this transformation")
        return sources

    # ------------------------------------------------------------------
    # 3. Primary generation
    # ------------------------------------------------------------------

    def _generate_text(
        self,
        notebook_id: str,
        handler: TransformationHandler,
        request: TransformationRequest,
        sources: list[Source],
        context: RequestContext,
    ) -> str:
        passages = None
        if request.prompt.strip() and self._retriever is not None:
            passages = self._retriever.search(
                notebook_id,
                request.prompt,
                self._settings.passage_top_k,
                source_ids={s.id for s in sources},
            )

        prompt = build_transformation_prompt(
            handler.type,
            sources,
            length=request.length,
            format=request.format,
            custom_prompt=request.prompt,
            passages=passages,
            max_source_chars=self._settings.max_source_chars,
        )
        timeout = _bounded(self._settings.text_timeout, context)
        try:
            text = self._text.generate(prompt, self._settings.text_model, timeout=timeout)
        except Exception as exc:
            logger.error("%s generation failed for notebook %s: %s", handler.type.value, notebook_id, exc)
            raise GenerationError(f"Generation failed: {exc}") from exc
        return text

    # ------------------------------------------------------------------
    # 4. Secondary generation
    # ------------------------------------------------------------------

    def _render_single_image(
        self, text: str, request: TransformationRequest, context: RequestContext
    ) -> ImageMetadata:
        metadata = ImageMetadata(length=request.length, format=request.format)
        try:
            metadata.image_url = self._images.generate_image(
                build_infograph_image_prompt(text),
                self._settings.image_model,
                timeout=_bounded(self._settings.image_timeout, context),
            )
        except Exception as exc:
            logger.error("failed to generate infographic image: %s", exc)
            metadata.image_error = str(exc) or exc.__class__.__name__
        return metadata

    def _render_slide_deck(
        self, text: str, request: TransformationRequest, context: RequestContext
    ) -> SlideDeckMetadata:
        style, slides = parse_slides(text)
        metadata = SlideDeckMetadata(
            length=request.length,
            format=request.format,
            style=style,
            outline=[s.to_dict() for s in slides],
        )

        if len(slides) > self._settings.max_slides:
            logger.error(
                "slide deck has %d slides, limit is %d; skipping image generation",
                len(slides),
                self._settings.max_slides,
            )
            metadata.image_error = (
                f"Slide deck has {len(slides)} slides, exceeding the limit of "
                f"{self._settings.max_slides}; image generation was skipped"
            )
            return metadata

        logger.info("generating %d slide images", len(slides))
        if self._settings.slide_concurrency <= 1:
            urls = []
            for i, slide in enumerate(slides):
                context.check()
                urls.append(self._render_slide(i, len(slides), slide, context))
        else:
            with ThreadPoolExecutor(max_workers=self._settings.slide_concurrency) as pool:
                futures = [
                    pool.submit(self._render_slide, i, len(slides), slide, context)
                    for i, slide in enumerate(slides)
                ]
                urls = [f.result() for f in futures]

        # Failed slides are dropped; the rest keep deck order.
        metadata.slides = [url for url in urls if url is not None]
        return metadata

    def _render_slide(
        self, index: int, total: int, slide: Slide, context: RequestContext
    ) -> str | None:
        if context.cancelled:
            return None
        logger.info("generating image for slide %d/%d", index + 1, total)
        try:
            return self._images.generate_image(
                build_slide_image_prompt(slide.style, slide.title, slide.content),
                self._settings.image_model,
                timeout=_bounded(self._settings.image_timeout, context),
            )
        except Exception as exc:
            logger.error("failed to generate slide %d: %s", index + 1, exc)
            return None

    def _feed_back(self, notebook_id: str, text: str, source_ids: list[str]) -> str | None:
        """Store *text* as a new source of the notebook and index it.

        Each run adds another source, so the corpus grows with every insight.
        """
        try:
            source = self._storage.create_source(
                Source(notebook_id=notebook_id, name=INSIGHT_SOURCE_NAME, type="insight", content=text)
            )
        except Exception as exc:
            logger.error("failed to create insight source: %s", exc)
            return None

        try:
            count = self._pipeline.ingest(notebook_id, source.name, source.content, source_id=source.id)
        except IngestionError as exc:
            logger.error("failed to ingest insight text: %s", exc)
        else:
            self._storage.update_source_chunk_count(source.id, count)
        return source.id

    def _discard_insight(self, notebook_id: str, source_id: str) -> None:
        """Undo ``_feed_back`` when its note could not be stored."""
        try:
            self._pipeline.purge(notebook_id, source_id)
            self._storage.delete_source(source_id)
        except Exception as exc:
            logger.error("failed to remove orphaned insight source %s: %s", source_id, exc)

    # ------------------------------------------------------------------
    # 6. Activity log
    # ------------------------------------------------------------------

    def _log_activity(
        self, notebook_id: str, note: Note, request: TransformationRequest, source_count: int
    ) -> None:
        entry = ActivityEntry(
            action="transform",
            actor=request.actor,
            resource_type="note",
            resource_id=note.id,
            resource_name=note.title,
            details={
                "notebook_id": notebook_id,
                "transform_type": note.type,
                "length": request.length,
                "format": request.format,
                "source_count": source_count,
            },
        )
        try:
            self._storage.log_activity(entry)
        except Exception as exc:
            logger.error("failed to log transformation activity: %s", exc)


def _bounded(timeout: float, context: RequestContext) -> float:
    remaining = context.remaining()
    return timeout if remaining is None else min(timeout, remaining)
