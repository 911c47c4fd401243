"""Domain models for the Quire database layer.

Note metadata is a discriminated union: the concrete class is selected by the
note's ``type`` and serialized to a flat JSON object only at the storage
boundary (``to_dict`` / ``load_metadata``).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum


class TransformationType(str, Enum):
    """Closed set of transformations a notebook can run."""

    SUMMARY = "summary"
    FAQ = "faq"
    STUDY_GUIDE = "study_guide"
    OUTLINE = "outline"
    PODCAST = "podcast"
    TIMELINE = "timeline"
    GLOSSARY = "glossary"
    QUIZ = "quiz"
    MINDMAP = "mindmap"
    INFOGRAPH = "infograph"
    PPT = "ppt"
    INSIGHT = "insight"


@dataclass
class Notebook:
    id: str
    name: str
    description: str = ""
    created_at: str | None = None


@dataclass
class Source:
    notebook_id: str
    name: str
    content: str = ""
    type: str = "text"
    id: str = ""
    byte_size: int = 0
    chunk_count: int = 0
    created_at: str | None = None


@dataclass
class Chunk:
    notebook_id: str
    source_id: str
    source_name: str
    chunk_index: int
    text: str
    rowid: int | None = None  # set after insert; None for unsaved chunks


# ---------------------------------------------------------------------------
# Note metadata variants
# ---------------------------------------------------------------------------


@dataclass
class TextMetadata:
    """Metadata for plain text transformations."""

    length: str = ""
    format: str = ""

    def to_dict(self) -> dict:
        """Serialize for storage; unset optional fields are omitted."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ImageMetadata(TextMetadata):
    """Single illustrative image. Exactly one of url / error is set after generation."""

    image_url: str | None = None
    image_error: str | None = None


@dataclass
class SlideDeckMetadata(TextMetadata):
    """Slide deck: rendered slide locations in deck order plus the parsed outline."""

    style: str = ""
    slides: list[str] = field(default_factory=list)
    outline: list[dict] = field(default_factory=list)
    image_error: str | None = None


@dataclass
class InsightMetadata(TextMetadata):
    """Insight report; records the source the report was fed back as."""

    insight_source_id: str | None = None


NoteMetadata = TextMetadata | ImageMetadata | SlideDeckMetadata | InsightMetadata

_METADATA_BY_TYPE: dict[str, type[TextMetadata]] = {
    TransformationType.INFOGRAPH.value: ImageMetadata,
    TransformationType.PPT.value: SlideDeckMetadata,
    TransformationType.INSIGHT.value: InsightMetadata,
}


def metadata_class_for(note_type: str) -> type[TextMetadata]:
    """Return the metadata variant for *note_type* (TextMetadata if not special)."""
    return _METADATA_BY_TYPE.get(note_type, TextMetadata)


def load_metadata(note_type: str, raw: str | dict | None) -> TextMetadata:
    """Rebuild the metadata variant for *note_type* from its stored JSON form.

    Keys that do not belong to the variant are dropped.
    """
    data = json.loads(raw) if isinstance(raw, str) else dict(raw or {})
    cls = metadata_class_for(note_type)
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Note:
    notebook_id: str
    title: str
    content: str
    type: str
    source_ids: list[str] = field(default_factory=list)
    metadata: TextMetadata = field(default_factory=TextMetadata)
    id: str = ""
    created_at: str | None = None


@dataclass
class ActivityEntry:
    action: str
    actor: str = ""
    resource_type: str = ""
    resource_id: str = ""
    resource_name: str = ""
    details: dict = field(default_factory=dict)
    id: str = ""
    created_at: str | None = None
