"""
Prompt Builder Tests

Field filtering and prompt assembly; no HTTP involved.
"""

import json

from arena_slides.ai.prompts import (
    DETAIL_INSTRUCTIONS,
    RESPONSE_FORMAT,
    TYPE_EMPHASIS,
    build_collection_context,
    build_collection_prompt,
    build_record_prompt,
    filter_fields,
)
from arena_slides.core.datashapes import (
    CollectionEntry,
    DetailLevel,
    RecordType,
    SchemaConfig,
    TypeSchema,
)
from arena_slides.plm.normalizer import normalize_record

from conftest import raw_item


def _bracket():
    return normalize_record(raw_item(
        "100-0042", "Bracket",
        owner={"fullName": "Ada Lovelace"},
        revisionNumber="B",
        tags=[],
    ))


class TestFilterFields:

    def test_empty_selection_serializes_everything(self):
        record = _bracket()

        text = filter_fields(record, TypeSchema())

        assert json.loads(text) == record.raw

    def test_selected_fields_only(self):
        text = filter_fields(_bracket(), TypeSchema(fields=["name", "category", "owner"]))

        assert text.splitlines() == [
            "name: Bracket",
            "category: Mechanical",
            "owner: Ada Lovelace",
        ]
        assert "description" not in text

    def test_capitalized_field_resolves(self):
        record = normalize_record({"Guid": "G1", "Number": "P-1", "Name": "Pin", "RevisionNumber": "C"})

        assert filter_fields(record, TypeSchema(fields=["revisionNumber"])) == "revisionNumber: C"

    def test_missing_and_empty_fields_skipped(self):
        text = filter_fields(_bracket(), TypeSchema(fields=["name", "tags", "supplier"]))
        assert text == "name: Bracket"

    def test_nothing_present_keeps_basics(self):
        """
        EDGE: none of the selected fields exist on the record.
        """
        text = filter_fields(_bracket(), TypeSchema(fields=["supplier"]))

        assert text.splitlines() == [
            "number: 100-0042",
            "name: Bracket",
            "description: Bracket description",
        ]


class TestRecordPrompt:

    def test_contains_every_section(self):
        schema = TypeSchema(fields=["name"], instructions="Mention the revision")

        prompt = build_record_prompt(_bracket(), RecordType.ITEM, schema, "Design review",
                                     2, 5, DetailLevel.BRIEF)

        assert "PRESENTATION GOAL: Design review" in prompt
        assert "This is slide 2 of 5." in prompt
        assert DETAIL_INSTRUCTIONS[DetailLevel.BRIEF] in prompt
        assert TYPE_EMPHASIS[RecordType.ITEM] in prompt
        assert "RECORD (ITEM 100-0042):" in prompt
        assert "ADDITIONAL INSTRUCTIONS: Mention the revision" in prompt
        assert prompt.endswith(RESPONSE_FORMAT)

    def test_blank_intent_gets_default_goal(self):
        prompt = build_record_prompt(_bracket(), RecordType.ITEM, TypeSchema(), "   ",
                                     1, 1, DetailLevel.MEDIUM)

        assert "PRESENTATION GOAL: Give an overview of the selected records." in prompt
        assert "ADDITIONAL INSTRUCTIONS" not in prompt

    def test_type_changes_emphasis(self):
        record = normalize_record({"guid": "C1", "number": "ECO-9", "title": "Rework"})

        prompt = build_record_prompt(record, RecordType.CHANGE, TypeSchema(), "", 1, 1, DetailLevel.DETAILED)

        assert TYPE_EMPHASIS[RecordType.CHANGE] in prompt
        assert TYPE_EMPHASIS[RecordType.ITEM] not in prompt


class TestCollectionPrompt:

    def _entries(self):
        change = normalize_record({"guid": "C1", "number": "ECO-40", "title": "Thicker plate"})
        request = normalize_record({"guid": "R1", "number": "ECR-12", "title": "Bracket cracks"})
        return [
            CollectionEntry(_bracket(), RecordType.ITEM, images=["bracket.png"]),
            CollectionEntry(change, RecordType.CHANGE),
            CollectionEntry(request, RecordType.REQUEST),
            CollectionEntry(normalize_record(raw_item("100-0043", "Plate")), RecordType.ITEM),
        ]

    def test_context_counts_and_blocks(self):
        context = build_collection_context(self._entries(), SchemaConfig())
        lines = context.splitlines()

        assert lines[0] == "COLLECTION OF 4 RECORDS"
        assert lines[1:4] == ["- change: 1", "- item: 2", "- request: 1"]
        assert "--- RECORD 1: 100-0042 (item) ---" in context
        assert "--- RECORD 3: ECR-12 (request) ---" in context
        assert "images attached: 1" in context

    def test_prompt_merges_instructions(self):
        schemas = SchemaConfig()
        schemas.for_type(RecordType.CHANGE).instructions = "Show affected items"
        schemas.for_type(RecordType.ITEM).instructions = "Note the revision"

        prompt = build_collection_prompt(self._entries(), schemas, "Root cause story", DetailLevel.MEDIUM)

        assert "PRESENTATION GOAL: Root cause story" in prompt
        assert "Note the revision" in prompt
        assert "Show affected items" in prompt
        assert "SYNTHESIS:" in prompt
        assert "SLIDE 1: <title>" in prompt
