#!/usr/bin/env python3
"""
Response normalization for the Arena REST API

The backend is inconsistent about key casing (guid vs Guid) and envelope
naming (results vs Results). This module is the only place that knows; it
maps raw payloads onto core.datashapes.Record immediately on receipt.
"""

from typing import Any, Dict, List, Optional

from arena_slides.core.datashapes import Record, RecordType


def _capitalized(key: str) -> str:
    return key[:1].upper() + key[1:]


def first_present(obj: Optional[Dict[str, Any]], key: str, default: Any = None) -> Any:
    """
    Resolve `key` in either casing with `a || b` semantics.

    The lowercase spelling wins whenever it holds a truthy value; otherwise
    the capitalized spelling is used; otherwise `default`.
    """
    if not isinstance(obj, dict):
        return default
    value = obj.get(key)
    if value:
        return value
    value = obj.get(_capitalized(key))
    if value:
        return value
    # Preserve falsy-but-present values (0, False) over the default
    for candidate in (key, _capitalized(key)):
        if candidate in obj and obj[candidate] is not None:
            return obj[candidate]
    return default


def first_of(obj: Optional[Dict[str, Any]], *keys: str, default: Any = None) -> Any:
    """first_present over several alternative field names, in order."""
    for key in keys:
        value = first_present(obj, key)
        if value:
            return value
    return default


def extract_results(envelope: Any) -> List[Dict[str, Any]]:
    """List payload from a `results`/`Results` envelope (or a bare list)."""
    if isinstance(envelope, list):
        return [entry for entry in envelope if isinstance(entry, dict)]
    results = first_present(envelope, "results", default=[])
    if not isinstance(results, list):
        return []
    return [entry for entry in results if isinstance(entry, dict)]


def extract_count(envelope: Any) -> Optional[int]:
    count = first_present(envelope, "count")
    try:
        return int(count) if count is not None else None
    except (TypeError, ValueError):
        return None


def display_value(value: Any) -> str:
    """Flatten nested reference objects ({"name": ...}) to their label."""
    if value is None:
        return ""
    if isinstance(value, dict):
        label = first_of(value, "name", "label", "value", "fullName", "email", "number")
        return str(label) if label is not None else ""
    if isinstance(value, list):
        return ", ".join(filter(None, (display_value(entry) for entry in value)))
    return str(value)


# Keys lifted onto Record attributes (both casings are consumed)
_CANONICAL_KEYS = {
    "guid", "number", "name", "title", "description", "category",
    "lifecyclePhase", "lifecycleStatus", "status",
}


def _canonical_variants() -> set:
    return _CANONICAL_KEYS | {_capitalized(key) for key in _CANONICAL_KEYS}


def infer_record_type(number: str) -> RecordType:
    """Number-prefix heuristic used when the caller does not say what a record is."""
    prefix = (number or "").strip().upper()
    if prefix.startswith("ECO"):
        return RecordType.CHANGE
    if prefix.startswith("ECR"):
        return RecordType.REQUEST
    if prefix.startswith(("CAR", "NCMR", "NCR")):
        return RecordType.QUALITY
    return RecordType.ITEM


def normalize_record(raw: Dict[str, Any], record_type: Optional[RecordType] = None) -> Record:
    """
    Map one backend object onto the canonical Record shape.

    Args:
        raw: Object as returned by the API (either casing)
        record_type: Known type; inferred from the number prefix when None
    """
    raw = raw if isinstance(raw, dict) else {}
    number = str(first_present(raw, "number", default="") or "")
    name = first_of(raw, "name", "title", default="")
    lifecycle = first_of(raw, "lifecyclePhase", "lifecycleStatus", "status", default="")

    canonical = _canonical_variants()
    attributes = {key: value for key, value in raw.items() if key not in canonical}

    return Record(
        guid=str(first_present(raw, "guid", default="") or ""),
        number=number,
        name=display_value(name),
        description=display_value(first_present(raw, "description", default="")),
        category=display_value(first_present(raw, "category", default="")),
        lifecycle_phase=display_value(lifecycle),
        record_type=record_type or infer_record_type(number),
        attributes=attributes,
        raw=dict(raw),
    )


def normalize_records(envelope: Any, record_type: Optional[RecordType] = None) -> List[Record]:
    return [normalize_record(entry, record_type) for entry in extract_results(envelope)]
