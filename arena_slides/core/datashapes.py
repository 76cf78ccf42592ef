#!/usr/bin/env python3
"""
datashapes.py - Centralized Data Shape Definitions

All dataclasses and enums used across Arena Slides live here.
No HTTP and no persistence - just definitions of what data looks like.

Other modules import from here to keep structures consistent:
    from arena_slides.core.datashapes import Record, RecordType, Summary
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


# =============================================================================
# ENUMS
# =============================================================================

class RecordType(Enum):
    """Kinds of PLM records the add-on knows how to present."""
    ITEM = "item"
    CHANGE = "change"          # Engineering change order (ECO)
    REQUEST = "request"        # Engineering change request (ECR)
    QUALITY = "quality"        # CAR / NCMR / NCR quality processes

    @classmethod
    def from_value(cls, value: Any, default: Optional["RecordType"] = None) -> Optional["RecordType"]:
        """Lenient lookup used when reading types back from notes or settings."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {
            "items": cls.ITEM,
            "changes": cls.CHANGE,
            "eco": cls.CHANGE,
            "requests": cls.REQUEST,
            "ecr": cls.REQUEST,
            "qualityprocess": cls.QUALITY,
            "quality_process": cls.QUALITY,
        }
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            return default


class DetailLevel(Enum):
    """How verbose AI-generated slide content should be."""
    BRIEF = "brief"
    MEDIUM = "medium"
    DETAILED = "detailed"

    @classmethod
    def from_value(cls, value: Any) -> "DetailLevel":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.MEDIUM


# =============================================================================
# SESSION
# =============================================================================

@dataclass
class Session:
    """An authenticated PLM connection. The password is never part of it."""
    session_token: str
    user_email: str = ""
    workspace_id: str = ""
    created_at: str = ""

    def is_empty(self) -> bool:
        return not self.session_token


# =============================================================================
# RECORDS
# =============================================================================

@dataclass
class Record:
    """
    Canonical view of a PLM object.

    Built once at the API boundary by plm.normalizer.normalize_record;
    downstream code never looks at backend casing again.
    """
    guid: str
    number: str = ""
    name: str = ""
    description: str = ""
    category: str = ""
    lifecycle_phase: str = ""
    record_type: RecordType = RecordType.ITEM
    attributes: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_title(self) -> str:
        """Slide title in the "NUMBER: Name" form."""
        return f"{self.number}: {self.name}"

    def to_history_entry(self) -> Dict[str, str]:
        """Truncated form stored in collection history."""
        return {
            "guid": self.guid,
            "number": self.number,
            "name": self.name,
            "type": self.record_type.value,
        }


# =============================================================================
# SCHEMA (FIELD SELECTION)
# =============================================================================

@dataclass
class TypeSchema:
    """Selected fields plus free-text guidance for one record type."""
    fields: List[str] = field(default_factory=list)
    instructions: str = ""


SCHEMA_TYPES = (RecordType.ITEM, RecordType.CHANGE, RecordType.QUALITY, RecordType.REQUEST)


@dataclass
class SchemaConfig:
    """Active field selection for every record type."""
    types: Dict[RecordType, TypeSchema] = field(
        default_factory=lambda: {record_type: TypeSchema() for record_type in SCHEMA_TYPES}
    )

    def for_type(self, record_type: RecordType) -> TypeSchema:
        if record_type not in self.types:
            self.types[record_type] = TypeSchema()
        return self.types[record_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            record_type.value: {"fields": list(schema.fields), "instructions": schema.instructions}
            for record_type, schema in self.types.items()
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SchemaConfig":
        config = cls()
        for key, value in (data or {}).items():
            record_type = RecordType.from_value(key)
            if record_type is None or not isinstance(value, dict):
                continue
            fields = [str(name) for name in value.get("fields") or [] if name]
            config.types[record_type] = TypeSchema(
                fields=fields,
                instructions=str(value.get("instructions") or ""),
            )
        return config

    @classmethod
    def from_json(cls, blob: Optional[str]) -> "SchemaConfig":
        """Parse a stored blob; anything unreadable yields the empty skeleton."""
        if not blob:
            return cls()
        try:
            data = json.loads(blob)
        except (TypeError, ValueError):
            return cls()
        if not isinstance(data, dict):
            return cls()
        return cls.from_dict(data)


# =============================================================================
# AI OUTPUT
# =============================================================================

@dataclass
class Summary:
    """Presentation-ready text for one record."""
    main_content: str = ""
    detailed_notes: str = ""
    used_fallback: bool = False


@dataclass
class SynthesisSlide:
    title: str
    main_content: str = ""
    detailed_notes: str = ""


@dataclass
class CollectionSynthesis:
    """Holistic multi-record summary proposed by the AI (or the fallback)."""
    synthesis: str = ""
    structure: str = ""
    slides: List[SynthesisSlide] = field(default_factory=list)
    used_fallback: bool = False


@dataclass
class CollectionEntry:
    """One record handed to collection synthesis."""
    record: Record
    record_type: RecordType
    images: List[str] = field(default_factory=list)


# =============================================================================
# COLLECTIONS & SLIDE METADATA
# =============================================================================

@dataclass
class Collection:
    """A saved snapshot of a prior search selection."""
    name: str
    timestamp: str
    items: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Collection":
        return cls(
            name=str(data.get("name") or ""),
            timestamp=str(data.get("timestamp") or ""),
            items=[dict(item) for item in data.get("items") or [] if isinstance(item, dict)],
        )


@dataclass
class ImageAttachment:
    """First image file of an item, downloaded for embedding on a slide."""
    name: str
    content: bytes
    file_format: str = ""


@dataclass
class SlideMetadata:
    """Back-reference from a generated slide to its source record."""
    guid: str
    record_type: RecordType
    last_updated: str = ""
    image_name: Optional[str] = None


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class ProbeResult:
    """Tagged outcome of trying one or more candidate endpoints."""
    found: bool
    path: Optional[str] = None
    data: Any = None
    status_code: Optional[int] = None
    attempted: List[str] = field(default_factory=list)


@dataclass
class OperationResult:
    """What every user-invoked operation hands back to the UI."""
    success: bool
    message: str = ""
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message, "data": self.data}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
