"""Parse generated slide-deck text into ordered slides.

Expected shape (see the ppt prompt)::

    Style: flat pastel illustrations, sans-serif headings

    ## Slide 1: Introduction
    - point
    ## Slide 2: ...

A deck without ``Slide N`` headings falls back to ``---`` separators, and a
deck with neither is a single slide.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_STYLE_RE = re.compile(r"^\s*(?:\*\*)?style(?:\*\*)?\s*:\s*(?:\*\*)?\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_HEADING_RE = re.compile(
    r"^\s*#{1,6}\s*(?:\*\*)?slide\s+\d+(?:\*\*)?\s*[:.\-–]?\s*(.*?)\s*$",
    re.IGNORECASE | re.MULTILINE,
)
_SEPARATOR_RE = re.compile(r"^\s*-{3,}\s*$", re.MULTILINE)


@dataclass
class Slide:
    title: str
    content: str
    style: str = ""

    def to_dict(self) -> dict:
        return {"title": self.title, "content": self.content}


def _preamble_end(text: str) -> int:
    """Offset where the first slide starts; the style line must come before it."""
    first = _HEADING_RE.search(text) or _SEPARATOR_RE.search(text)
    return first.start() if first else len(text)


def parse_slides(text: str) -> tuple[str, list[Slide]]:
    """Return ``(style, slides)`` parsed from *text*; every slide carries the style."""
    style = ""
    style_match = _STYLE_RE.search(text, 0, _preamble_end(text))
    if style_match:
        style = style_match.group(1).strip()
        text = text[: style_match.start()] + text[style_match.end():]

    headings = list(_HEADING_RE.finditer(text))
    if headings:
        slides = []
        for i, match in enumerate(headings):
            end = headings[i + 1].start() if i + 1 < len(headings) else len(text)
            slides.append(
                Slide(title=match.group(1).strip(), content=text[match.end():end].strip(), style=style)
            )
        return style, slides

    parts = [p.strip() for p in _SEPARATOR_RE.split(text)]
    slides = []
    for part in parts:
        if not part:
            continue
        first, _, rest = part.partition("\n")
        slides.append(Slide(title=first.lstrip("# ").strip(), content=rest.strip(), style=style))
    return style, slides
