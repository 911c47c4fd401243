"""Tests for slide-deck parsing."""

from __future__ import annotations

from quire.transform.slides import parse_slides

DECK = """\
Style: flat pastel illustrations, sans-serif headings

## Slide 1: Introduction
- Why notebooks
- What RAG adds

## Slide 2: Retrieval
- Chunking
- Top-K search

## Slide 3: Wrap-up
Questions?
"""


def test_headings_become_slides_with_shared_style():
    style, slides = parse_slides(DECK)

    assert style == "flat pastel illustrations, sans-serif headings"
    assert [s.title for s in slides] == ["Introduction", "Retrieval", "Wrap-up"]
    assert slides[1].content == "- Chunking\n- Top-K search"
    assert all(s.style == style for s in slides)


def test_style_line_is_not_part_of_first_slide():
    _, slides = parse_slides(DECK)
    assert "Style" not in slides[0].content


def test_bold_markers_and_heading_levels_are_tolerated():
    text = "**Style:** blueprint\n\n### **Slide 1**: Setup\nbody\n# slide 2 - Run\nmore"
    style, slides = parse_slides(text)
    assert style == "blueprint"
    assert [(s.title, s.content) for s in slides] == [("Setup", "body"), ("Run", "more")]


def test_separator_fallback():
    text = "Intro\n- a\n---\nMiddle\n- b\n---\n\n---\nEnd"
    style, slides = parse_slides(text)
    assert style == ""
    assert [s.title for s in slides] == ["Intro", "Middle", "End"]
    assert slides[0].content == "- a"


def test_plain_text_is_one_slide():
    _, slides = parse_slides("# Overview\nJust one block of text.")
    assert len(slides) == 1
    assert slides[0].title == "Overview"
    assert slides[0].content == "Just one block of text."


def test_eleven_slides_are_all_parsed():
    text = "Style: x\n" + "\n".join(f"## Slide {i}: T{i}\nbody {i}" for i in range(1, 12))
    _, slides = parse_slides(text)
    assert len(slides) == 11
    assert slides[-1].to_dict() == {"title": "T11", "content": "body 11"}


def test_empty_text_has_no_slides():
    assert parse_slides("   ") == ("", [])


def test_style_line_inside_a_slide_stays_in_its_content():
    text = "## Slide 1: Palette\nStyle: muted greens\n- swatches\n## Slide 2: End\nbye"
    style, slides = parse_slides(text)
    assert style == ""
    assert slides[0].content == "Style: muted greens\n- swatches"


def test_style_is_read_from_the_preamble_only():
    text = "Style: flat\n\n## Slide 1: Palette\nStyle: muted greens\n- swatches"
    style, slides = parse_slides(text)
    assert style == "flat"
    assert slides[0].content == "Style: muted greens\n- swatches"
