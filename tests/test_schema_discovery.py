"""
Schema Discovery Tests

Field extraction from one sampled record per type, the default lists used
when sampling fails, and merging with the saved selection.
"""

import pytest

from arena_slides.core.datashapes import RecordType, SchemaConfig, TypeSchema
from arena_slides.schema.discovery import (
    DEFAULT_FIELDS,
    SchemaDiscovery,
    extract_field_names,
    merge_with_preferences,
)

from conftest import make_response, paged, raw_item


FULL_ITEM = {
    "guid": "G-100",
    "Number": "100-0042",
    "name": "Bracket",
    "description": "Steel bracket",
    "category": {"guid": "CAT1", "name": "Mechanical"},
    "lifecyclePhase": {"guid": "LC1", "name": "Production"},
    "revisionNumber": "B",
    "additionalAttributes": [{"name": "Finish", "value": "Zinc"}],
    "creationDateTime": "2025-01-01T00:00:00Z",
    "url": {"api": "https://arena.test/v1/items/G-100"},
    "assemblyType": {"name": "Assembly"},
}


@pytest.fixture
def discovery(client, logged_in, error_handler):
    return SchemaDiscovery(client, logged_in, error_handler)


class TestExtractFieldNames:

    @pytest.mark.critical
    def test_exclusions_nesting_and_order(self):
        names = extract_field_names(FULL_ITEM)

        assert names == [
            "additionalAttributes",
            "category",
            "description",
            "lifecyclePhase",
            "name",
            "Number",
            "revisionNumber",
        ]

    def test_excluded_in_either_casing(self):
        assert extract_field_names({"Guid": "x", "ID": 1, "Links": [], "title": "t"}) == ["title"]

    def test_not_a_dict(self):
        assert extract_field_names(None) == []


class TestMerge:

    def test_no_saved_selection_selects_all(self):
        assert merge_with_preferences(["a", "b"], []) == ["a", "b"]

    def test_saved_intersected_in_discovered_order(self):
        assert merge_with_preferences(["a", "b", "c"], ["c", "a", "gone"]) == ["a", "c"]

    @pytest.mark.parametrize("discovered,saved", [
        (["a", "b", "c"], ["b"]),
        (["x"], ["y", "z"]),
        (["a", "b"], ["a", "b", "c"]),
    ])
    def test_result_is_subset_of_discovered(self, discovered, saved):
        assert set(merge_with_preferences(discovered, saved)) <= set(discovered)


class TestSchemaDiscovery:

    def _serve_items(self, arena_http):
        arena_http.add("GET", "/items", paged([raw_item("100-0042", "Bracket", guid="G-100")]))
        arena_http.add("GET", "/items/G-100", make_response(200, FULL_ITEM))

    def test_discover_item_fields(self, discovery, arena_http):
        self._serve_items(arena_http)

        fields = discovery.discover_type(RecordType.ITEM)

        assert "revisionNumber" in fields
        assert "guid" not in fields
        assert arena_http.calls[1].params == {"responseview": "full"}

    def test_no_records_uses_defaults(self, discovery, arena_http):
        arena_http.add("GET", "/changes", paged([]))

        assert discovery.discover_type(RecordType.CHANGE) == DEFAULT_FIELDS[RecordType.CHANGE]

    def test_quality_unavailable_uses_defaults(self, discovery, arena_http, error_handler):
        """
        EDGE: every quality path 404s -> defaults, with an alert, other types unaffected.
        """
        self._serve_items(arena_http)

        discovered = discovery.discover_all()

        assert discovered[RecordType.QUALITY] == DEFAULT_FIELDS[RecordType.QUALITY]
        assert "revisionNumber" in discovered[RecordType.ITEM]
        categories = {error["category"] for error in error_handler.recent_errors}
        assert categories == {"schema_discovery"}

    def test_refresh_merges_and_persists(self, discovery, logged_in, arena_http):
        self._serve_items(arena_http)
        saved = SchemaConfig()
        saved.types[RecordType.ITEM] = TypeSchema(fields=["name", "obsoleteField"], instructions="Be terse")
        logged_in.save_schema_config(saved)

        result = discovery.refresh_schema()

        active = logged_in.get_schema_config()
        assert active.for_type(RecordType.ITEM).fields == ["name"]
        assert active.for_type(RecordType.ITEM).instructions == "Be terse"
        assert active.for_type(RecordType.REQUEST).fields == DEFAULT_FIELDS[RecordType.REQUEST]
        assert "revisionNumber" in result["available"]["item"]
        assert result["active"].for_type(RecordType.ITEM).fields == ["name"]

    def test_update_selection_keeps_instructions(self, discovery, logged_in):
        discovery.update_selection(RecordType.CHANGE, ["title"], instructions="Show impact")
        discovery.update_selection(RecordType.CHANGE, ["title", "status"])

        schema = logged_in.get_schema_config().for_type(RecordType.CHANGE)
        assert schema.fields == ["title", "status"]
        assert schema.instructions == "Show impact"
