#!/usr/bin/env python3
"""
Schema Discovery - which fields does this workspace actually have?

Samples one live record per type and reads its top-level keys. Types that
cannot be sampled fall back to a hand-written default list without blocking
the other types.
"""

from typing import Any, Dict, List, Optional

from arena_slides.core.datashapes import SCHEMA_TYPES, RecordType, SchemaConfig, TypeSchema
from arena_slides.core.error_handler import ErrorCategory, ErrorHandler, ErrorSeverity
from arena_slides.core.logging_utils import ArenaLogger
from arena_slides.plm.client import ArenaClient
from arena_slides.settings.credential_store import CredentialStore

schema_logger = ArenaLogger("arena_slides.schema")

# System fields never offered for selection; matched in both casings
EXCLUDED_FIELDS = {
    "guid", "id", "url", "urls", "self", "links", "apiUrl", "appUrl",
    "creationDateTime", "lastModifiedDateTime", "modifiedDateTime",
    "effectiveDateTime", "supersededDateTime", "revisionGuid",
}
_EXCLUDED_LOWER = {name.lower() for name in EXCLUDED_FIELDS}

# Nested objects are dropped unless their key is one of these
NESTED_ALLOWED = {"category", "lifecyclephase", "owner", "creator", "status"}

DEFAULT_FIELDS: Dict[RecordType, List[str]] = {
    RecordType.ITEM: ["category", "description", "lifecyclePhase", "name", "number", "revisionNumber"],
    RecordType.CHANGE: ["category", "description", "effectivityType", "implementationStatus",
                        "lifecycleStatus", "number", "title"],
    RecordType.QUALITY: ["category", "description", "name", "number", "owner", "status"],
    RecordType.REQUEST: ["category", "creator", "description", "number", "status", "title"],
}


def extract_field_names(sample: Optional[Dict[str, Any]]) -> List[str]:
    """
    Selectable field names of one raw record.

    Excluded system fields are stripped, nested objects survive only if
    allow-listed, arrays and primitives are always kept. Sorted
    case-insensitively.
    """
    if not isinstance(sample, dict):
        return []
    names = []
    for key, value in sample.items():
        if key.lower() in _EXCLUDED_LOWER:
            continue
        if isinstance(value, dict) and key.lower() not in NESTED_ALLOWED:
            continue
        names.append(key)
    return sorted(names, key=str.lower)


def merge_with_preferences(discovered: List[str], saved: List[str]) -> List[str]:
    """
    Active selection for one type.

    No saved selection selects everything discovered. Otherwise only
    discovered fields that were saved survive, in discovered order; saved
    fields that no longer exist are dropped.
    """
    if not saved:
        return list(discovered)
    wanted = set(saved)
    return [name for name in discovered if name in wanted]


class SchemaDiscovery:
    def __init__(self, client: ArenaClient, credentials: CredentialStore,
                 error_handler: Optional[ErrorHandler] = None):
        self.client = client
        self.credentials = credentials
        self.error_handler = error_handler or ErrorHandler()

    def discover_type(self, record_type: RecordType) -> List[str]:
        """Field names for one type; the default list on any fetch error."""
        fields = None
        with self.error_handler.create_context_manager(
            ErrorCategory.SCHEMA_DISCOVERY, ErrorSeverity.MEDIUM_ALERT,
            operation="discover_type", context=record_type.value
        ) as ctx:
            fields = extract_field_names(self.client.sample_raw(record_type))

        if ctx.failed:
            return list(DEFAULT_FIELDS[record_type])
        if not fields:
            schema_logger.log_info("NO_SAMPLE", f"No {record_type.value} records to sample, using defaults")
            return list(DEFAULT_FIELDS[record_type])
        return fields

    def discover_all(self) -> Dict[RecordType, List[str]]:
        return {record_type: self.discover_type(record_type) for record_type in SCHEMA_TYPES}

    def refresh_schema(self) -> Dict[str, Any]:
        """
        Discover, merge with the saved selection, persist the result.

        Returns:
            {"available": {type: [fields]}, "active": SchemaConfig}
        """
        discovered = self.discover_all()
        saved = self.credentials.get_schema_config()

        active = SchemaConfig()
        for record_type, fields in discovered.items():
            previous = saved.for_type(record_type)
            active.types[record_type] = TypeSchema(
                fields=merge_with_preferences(fields, previous.fields),
                instructions=previous.instructions,
            )

        self.credentials.save_schema_config(active)
        schema_logger.log_info("SCHEMA_SAVED", "Schema configuration refreshed", {
            record_type.value: len(schema.fields) for record_type, schema in active.types.items()
        })
        return {
            "available": {record_type.value: fields for record_type, fields in discovered.items()},
            "active": active,
        }

    def update_selection(self, record_type: RecordType, fields: List[str],
                         instructions: Optional[str] = None) -> SchemaConfig:
        """Replace the saved field selection (and optionally instructions) for one type."""
        config = self.credentials.get_schema_config()
        current = config.for_type(record_type)
        config.types[record_type] = TypeSchema(
            fields=list(fields),
            instructions=current.instructions if instructions is None else instructions,
        )
        self.credentials.save_schema_config(config)
        return config
