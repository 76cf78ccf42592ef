#!/usr/bin/env python3
"""
Marker-based parsing of AI responses

Pure functions, no HTTP. The AI is asked for plain text with section
markers rather than JSON; these parsers degrade gracefully when it does not
follow the format exactly.
"""

import re
from typing import Dict, List, Optional, Pattern

from arena_slides.core.datashapes import CollectionSynthesis, Summary, SynthesisSlide

MAIN_MARKER = re.compile(r'\**MAIN CONTENT:\**', re.IGNORECASE)
NOTES_MARKER = re.compile(r'\**DETAILED NOTES:\**', re.IGNORECASE)

# Collection markers must start a line so prose like "four slides:" is not a marker
SYNTHESIS_MARKER = re.compile(r'^[ \t#*]*SYNTHESIS:\**', re.IGNORECASE | re.MULTILINE)
STRUCTURE_MARKER = re.compile(r'^[ \t#*]*PRESENTATION STRUCTURE:\**', re.IGNORECASE | re.MULTILINE)
SLIDES_MARKER = re.compile(r'^[ \t#*]*SLIDES:\**', re.IGNORECASE | re.MULTILINE)
SLIDE_SPLIT = re.compile(r'^[ \t#*]*SLIDE\s+\d+\s*:\**', re.IGNORECASE | re.MULTILINE)

COLLECTION_FALLBACK_TITLE = "Collection Overview"


def extract_sections(text: str, markers: Dict[str, Pattern]) -> Dict[str, Optional[str]]:
    """
    Content following each marker, up to the next marker or end of string.

    Only the first occurrence of each marker counts. Markers that do not
    appear map to None.
    """
    positions = []
    for name, pattern in markers.items():
        match = pattern.search(text)
        if match:
            positions.append((match.start(), match.end(), name))
    positions.sort()

    sections: Dict[str, Optional[str]] = {name: None for name in markers}
    for index, (_, end, name) in enumerate(positions):
        next_start = positions[index + 1][0] if index + 1 < len(positions) else len(text)
        sections[name] = text[end:next_start].strip()
    return sections


def split_in_half(text: str) -> Summary:
    """Last resort when no marker is present: split the lines at floor(n/2)."""
    lines = text.strip().splitlines()
    if len(lines) <= 1:
        return Summary(main_content=text.strip(), detailed_notes="")
    middle = len(lines) // 2
    return Summary(
        main_content="\n".join(lines[:middle]).strip(),
        detailed_notes="\n".join(lines[middle:]).strip(),
    )


def parse_summary_response(text: str) -> Summary:
    """
    Split a single-record response into main content and detailed notes.

    Both fields are always defined; notes may be empty.
    """
    text = text or ""
    sections = extract_sections(text, {"main": MAIN_MARKER, "notes": NOTES_MARKER})
    main, notes = sections["main"], sections["notes"]

    if main is None and notes is None:
        return split_in_half(text)

    if main is None:
        # Only notes marked: whatever precedes the notes marker is the body
        main = text[:NOTES_MARKER.search(text).start()].strip()

    return Summary(main_content=main, detailed_notes=notes or "")


def _clean_title(line: str) -> str:
    title = line.strip().strip('*#').strip()
    if title.lower().startswith("title:"):
        title = title[len("title:"):].strip()
    return title.strip('*"').strip()


def parse_slide_block(block: str, index: int) -> SynthesisSlide:
    """One `SLIDE n:` block: title line, then MAIN CONTENT / DETAILED NOTES."""
    lines = block.strip().splitlines()
    title = ""
    body_start = 0
    for line_index, line in enumerate(lines):
        if not line.strip():
            continue
        if MAIN_MARKER.match(line.strip()) or NOTES_MARKER.match(line.strip()):
            break
        title = _clean_title(line)
        body_start = line_index + 1
        break

    body = "\n".join(lines[body_start:])
    sections = extract_sections(body, {"main": MAIN_MARKER, "notes": NOTES_MARKER})
    main = sections["main"]
    if main is None:
        main = body.strip() if sections["notes"] is None else body[:NOTES_MARKER.search(body).start()].strip()

    return SynthesisSlide(
        title=title or f"Slide {index}",
        main_content=main,
        detailed_notes=sections["notes"] or "",
    )


def parse_slides(slides_text: str) -> List[SynthesisSlide]:
    blocks = SLIDE_SPLIT.split(slides_text)
    # Anything before the first SLIDE marker is preamble
    slide_blocks = [block for block in blocks[1:] if block.strip()]
    return [parse_slide_block(block, index) for index, block in enumerate(slide_blocks, 1)]


def parse_collection_response(text: str) -> CollectionSynthesis:
    """
    Parse SYNTHESIS / PRESENTATION STRUCTURE / SLIDES from a collection response.

    Always returns at least one slide: when none parse out, a single
    "Collection Overview" slide carries the synthesis (or the raw text).
    """
    text = text or ""
    sections = extract_sections(text, {
        "synthesis": SYNTHESIS_MARKER,
        "structure": STRUCTURE_MARKER,
        "slides": SLIDES_MARKER,
    })

    slides_text = sections["slides"]
    if slides_text is None and SLIDE_SPLIT.search(text):
        # Model skipped the SLIDES: header but still numbered its slides
        slides_text = text[SLIDE_SPLIT.search(text).start():]
    slides = parse_slides(slides_text) if slides_text else []

    synthesis = sections["synthesis"] or ""
    if sections["slides"] is None and slides and synthesis:
        # Synthesis ran into the unheaded slide list; cut it off there
        cut = SLIDE_SPLIT.search(synthesis)
        if cut:
            synthesis = synthesis[:cut.start()].strip()

    result = CollectionSynthesis(
        synthesis=synthesis,
        structure=sections["structure"] or "",
        slides=slides,
    )

    if not result.slides:
        result.slides = [SynthesisSlide(
            title=COLLECTION_FALLBACK_TITLE,
            main_content=synthesis or text.strip(),
            detailed_notes=result.structure,
        )]
    return result
