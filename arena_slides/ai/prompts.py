#!/usr/bin/env python3
"""
Prompt construction for slide summaries

Everything here is string assembly - no HTTP. The response format the
prompts ask for is exactly what ai.response_parser knows how to read.
"""

import json
from collections import Counter
from typing import List

from arena_slides.core.datashapes import (
    CollectionEntry,
    DetailLevel,
    Record,
    RecordType,
    TypeSchema,
)
from arena_slides.plm.normalizer import display_value, first_present

DOMAIN_CONTEXT = (
    "You are helping a product engineering team build a presentation from records "
    "stored in Arena, a Product Lifecycle Management (PLM) system. Items are parts, "
    "assemblies and documents with lifecycle phases and revisions. Changes (ECOs) "
    "release or modify items. Change requests (ECRs) propose changes. Quality "
    "records (CARs, NCMRs, NCRs) track non-conformances and corrective actions."
)

DETAIL_INSTRUCTIONS = {
    DetailLevel.BRIEF: (
        "Keep the main content to 3 short bullet points, no more than 12 words each. "
        "Keep the detailed notes to 2-3 sentences."
    ),
    DetailLevel.MEDIUM: (
        "Write 4-6 bullet points for the main content, each one line. "
        "Write one or two paragraphs of speaker notes with the supporting detail."
    ),
    DetailLevel.DETAILED: (
        "Write 6-8 informative bullet points for the main content, grouping related facts. "
        "Write thorough speaker notes covering every relevant field, risks and open questions."
    ),
}

TYPE_EMPHASIS = {
    RecordType.ITEM: (
        "Emphasize what the item is, its category, lifecycle phase, revision status "
        "and anything notable about sourcing, compliance or its place in an assembly."
    ),
    RecordType.CHANGE: (
        "Emphasize what the change modifies, why it was raised, which items are affected, "
        "its current status and implementation impact."
    ),
    RecordType.REQUEST: (
        "Emphasize the problem or opportunity the request describes, who raised it, "
        "its priority and whether it has been promoted to a change."
    ),
    RecordType.QUALITY: (
        "Emphasize the non-conformance or issue, its root cause, containment and "
        "corrective actions, and the current status of the quality process."
    ),
}

RESPONSE_FORMAT = (
    "Respond in exactly this format:\n"
    "MAIN CONTENT:\n"
    "<bullet points for the slide body, one per line, starting with •>\n"
    "DETAILED NOTES:\n"
    "<speaker notes in plain prose>"
)


def filter_fields(record: Record, schema: TypeSchema) -> str:
    """
    Render the schema-selected fields of a record as text for the prompt.

    An empty selection means "everything": the raw payload is serialized.
    Selected fields missing from this record are skipped.
    """
    if not schema.fields:
        return json.dumps(record.raw, indent=2, default=str)

    lines = []
    for field_name in schema.fields:
        value = first_present(record.raw, field_name)
        if value is None or value == "" or value == [] or value == {}:
            continue
        if isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
            rendered = display_value(value)
        elif isinstance(value, dict):
            rendered = display_value(value) or json.dumps(value, default=str)
        else:
            rendered = str(value)
        lines.append(f"{field_name}: {rendered}")

    if not lines:
        # Nothing selected is present on this record; keep the basics
        lines = [
            f"number: {record.number}",
            f"name: {record.name}",
            f"description: {record.description}",
        ]
    return "\n".join(lines)


def build_record_prompt(record: Record,
                        record_type: RecordType,
                        schema: TypeSchema,
                        user_intent: str,
                        position: int,
                        total: int,
                        detail_level: DetailLevel) -> str:
    parts = [
        DOMAIN_CONTEXT,
        "",
        f"PRESENTATION GOAL: {user_intent.strip() or 'Give an overview of the selected records.'}",
        f"This is slide {position} of {total}.",
        "",
        f"DETAIL LEVEL: {DETAIL_INSTRUCTIONS[detail_level]}",
        f"FOCUS: {TYPE_EMPHASIS[record_type]}",
        "",
        f"RECORD ({record_type.value.upper()} {record.number}):",
        filter_fields(record, schema),
    ]
    if schema.instructions.strip():
        parts.extend(["", f"ADDITIONAL INSTRUCTIONS: {schema.instructions.strip()}"])
    parts.extend(["", RESPONSE_FORMAT])
    return "\n".join(parts)


def build_collection_context(entries: List[CollectionEntry], schemas) -> str:
    """Aggregated context document: counts by type, then one block per record."""
    counts = Counter(entry.record_type.value for entry in entries)
    lines = [f"COLLECTION OF {len(entries)} RECORDS"]
    for type_name, count in sorted(counts.items()):
        lines.append(f"- {type_name}: {count}")

    for index, entry in enumerate(entries, 1):
        schema = schemas.for_type(entry.record_type)
        lines.extend([
            "",
            f"--- RECORD {index}: {entry.record.number} ({entry.record_type.value}) ---",
            filter_fields(entry.record, schema),
            f"images attached: {len(entry.images)}",
        ])
    return "\n".join(lines)


def build_collection_prompt(entries: List[CollectionEntry], schemas, user_intent: str,
                            detail_level: DetailLevel) -> str:
    instructions = "\n".join(
        schema.instructions.strip()
        for schema in schemas.types.values()
        if schema.instructions.strip()
    )
    parts = [
        DOMAIN_CONTEXT,
        "",
        f"PRESENTATION GOAL: {user_intent.strip() or 'Summarize this collection of records.'}",
        "",
        "Analyze the records below as one body of work. Look for relationships:",
        "- change requests that led to changes, and the items those changes affect",
        "- quality issues that triggered corrective changes",
        "- assemblies and their components",
        "Then propose your own slide decomposition for the presentation.",
        "",
        f"DETAIL LEVEL: {DETAIL_INSTRUCTIONS[detail_level]}",
    ]
    if instructions:
        parts.append(f"ADDITIONAL INSTRUCTIONS: {instructions}")
    parts.extend([
        "",
        build_collection_context(entries, schemas),
        "",
        "Respond in exactly this format:",
        "SYNTHESIS:",
        "<one paragraph describing the collection as a whole and how records relate>",
        "PRESENTATION STRUCTURE:",
        "<one line per proposed slide explaining the flow>",
        "SLIDES:",
        "SLIDE 1: <title>",
        "MAIN CONTENT:",
        "<bullet points starting with •>",
        "DETAILED NOTES:",
        "<speaker notes>",
        "SLIDE 2: <title>",
        "...",
    ])
    return "\n".join(parts)
