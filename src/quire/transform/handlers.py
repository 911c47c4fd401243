"""Transformation handler registry.

Every ``TransformationType`` has exactly one handler declaring which kind of
secondary work follows primary text generation and how its failures are
treated:

  TEXT          no secondary step
  SINGLE_IMAGE  one image from the text; failure → metadata.image_error,
                note content cleared (image-only presentation)
  SLIDE_DECK    one image per parsed slide; cap exceeded → metadata.image_error,
                per-slide failure → slide dropped (logged only)
  FEEDBACK      text re-ingested as a new source of the notebook
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from quire.db.models import TransformationType
from quire.errors import ValidationError
from quire.transform.prompts import INSTRUCTIONS


class HandlerKind(str, Enum):
    TEXT = "text"
    SINGLE_IMAGE = "single_image"
    SLIDE_DECK = "slide_deck"
    FEEDBACK = "feedback"


@dataclass(frozen=True)
class TransformationHandler:
    type: TransformationType
    kind: HandlerKind
    title: str

    @property
    def image_only(self) -> bool:
        """Note content is cleared; the image is the presentation."""
        return self.kind is HandlerKind.SINGLE_IMAGE

    @property
    def instruction(self) -> str:
        return INSTRUCTIONS[self.type]


REGISTRY: dict[TransformationType, TransformationHandler] = {}


def register(type_: TransformationType, kind: HandlerKind, title: str) -> None:
    REGISTRY[type_] = TransformationHandler(type=type_, kind=kind, title=title)


register(TransformationType.SUMMARY, HandlerKind.TEXT, "Summary")
register(TransformationType.FAQ, HandlerKind.TEXT, "FAQ")
register(TransformationType.STUDY_GUIDE, HandlerKind.TEXT, "Study Guide")
register(TransformationType.OUTLINE, HandlerKind.TEXT, "Outline")
register(TransformationType.PODCAST, HandlerKind.TEXT, "Podcast Script")
register(TransformationType.TIMELINE, HandlerKind.TEXT, "Timeline")
register(TransformationType.GLOSSARY, HandlerKind.TEXT, "Glossary")
register(TransformationType.QUIZ, HandlerKind.TEXT, "Quiz")
register(TransformationType.MINDMAP, HandlerKind.TEXT, "Mind Map")
register(TransformationType.INFOGRAPH, HandlerKind.SINGLE_IMAGE, "Infographic")
register(TransformationType.PPT, HandlerKind.SLIDE_DECK, "Slide Deck")
register(TransformationType.INSIGHT, HandlerKind.FEEDBACK, "Insight Report")


def get_handler(type_: str | TransformationType) -> TransformationHandler:
    """Return the handler for *type_*.

    Raises:
        ValidationError: If *type_* is not a known transformation type.
    """
    try:
        key = TransformationType(type_)
    except ValueError:
        known = ", ".join(t.value for t in TransformationType)
        raise ValidationError(f"Unknown transformation type '{type_}'. Known types: {known}") from None
    return REGISTRY[key]
