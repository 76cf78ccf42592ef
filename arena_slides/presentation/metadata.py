#!/usr/bin/env python3
"""
Slide metadata block

Generated slides carry a back-reference to their source record at the end
of the speaker notes:

    <detailed notes>

    [Arena Slides Metadata - Do Not Delete]
    guid=ABC123
    type=item
    lastUpdated=2026-01-01T00:00:00+00:00
    image=bracket.png

The parser also accepts comma-separated pairs on one line
(`guid=ABC,type=item`).
"""

import re
from typing import Optional, Tuple

from arena_slides.core.datashapes import RecordType, SlideMetadata, utc_now_iso
from arena_slides.plm.normalizer import infer_record_type

METADATA_MARKER = "[Arena Slides Metadata - Do Not Delete]"

_PAIR_PATTERN = re.compile(r'(\w+)=([^,\n]*)')
_LEGACY_TITLE = re.compile(r'^\s*([A-Za-z0-9]+-[A-Za-z0-9][A-Za-z0-9.\-]*)\s*:\s*(.*)$')


def build_metadata_block(metadata: SlideMetadata) -> str:
    lines = [
        METADATA_MARKER,
        f"guid={metadata.guid}",
        f"type={metadata.record_type.value}",
        f"lastUpdated={metadata.last_updated or utc_now_iso()}",
    ]
    if metadata.image_name:
        lines.append(f"image={metadata.image_name}")
    return "\n".join(lines)


def strip_metadata(notes: str) -> str:
    """Speaker notes with any metadata block removed."""
    notes = notes or ""
    index = notes.find(METADATA_MARKER)
    if index < 0:
        return notes
    return notes[:index].rstrip()


def append_metadata(notes: str, metadata: SlideMetadata) -> str:
    """Replace (never duplicate) the metadata block at the end of the notes."""
    body = strip_metadata(notes)
    block = build_metadata_block(metadata)
    return f"{body}\n\n{block}" if body else block


def has_metadata(notes: str) -> bool:
    return METADATA_MARKER in (notes or "")


def parse_metadata(notes: str) -> Optional[SlideMetadata]:
    """Metadata from speaker notes; None without a marker or a guid."""
    notes = notes or ""
    index = notes.find(METADATA_MARKER)
    if index < 0:
        return None

    pairs = {
        key.strip().lower(): value.strip()
        for key, value in _PAIR_PATTERN.findall(notes[index + len(METADATA_MARKER):])
    }
    guid = pairs.get("guid", "")
    if not guid:
        return None

    return SlideMetadata(
        guid=guid,
        record_type=RecordType.from_value(pairs.get("type"), default=RecordType.ITEM),
        last_updated=pairs.get("lastupdated", ""),
        image_name=pairs.get("image") or None,
    )


def parse_legacy_title(title: str) -> Optional[Tuple[str, RecordType]]:
    """
    Best-effort identification of slides made before the metadata block.

    "ECO-00042: Bracket rework" -> ("ECO-00042", RecordType.CHANGE). Record
    numbers can be reused over time, so a match is a guess.
    """
    match = _LEGACY_TITLE.match(title or "")
    if not match:
        return None
    number = match.group(1)
    return number, infer_record_type(number)
