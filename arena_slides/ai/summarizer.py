#!/usr/bin/env python3
"""
Summarizer - AI slide content with a deterministic fallback

summarize_record() and synthesize_collection() never raise. Any failure in
key lookup, the HTTP call or parsing is reported to the ErrorHandler and the
caller gets fallback content built from the record's own fields.
"""

from collections import Counter
from typing import List, Optional

from arena_slides.ai.gemini_client import GeminiConnector
from arena_slides.ai.prompts import build_collection_prompt, build_record_prompt
from arena_slides.ai.response_parser import (
    COLLECTION_FALLBACK_TITLE,
    parse_collection_response,
    parse_summary_response,
)
from arena_slides.core.config import get_config
from arena_slides.core.datashapes import (
    CollectionEntry,
    CollectionSynthesis,
    DetailLevel,
    Record,
    RecordType,
    Summary,
    SynthesisSlide,
)
from arena_slides.core.error_handler import ErrorCategory, ErrorHandler, ErrorSeverity
from arena_slides.core.exceptions import AIServiceError
from arena_slides.core.logging_utils import ArenaLogger
from arena_slides.plm.normalizer import infer_record_type
from arena_slides.settings.credential_store import CredentialStore

ai_logger = ArenaLogger("arena_slides.ai")

NUMBER_LABELS = {
    RecordType.ITEM: "Item Number",
    RecordType.CHANGE: "Change Number",
    RecordType.REQUEST: "Request Number",
    RecordType.QUALITY: "Quality Record Number",
}

DESCRIPTION_LIMIT = 500


def fallback_summary(record: Record, record_type: Optional[RecordType] = None, reason: str = "") -> Summary:
    """Bulleted key fields; missing values read N/A."""
    record_type = record_type or record.record_type
    description = record.description or "N/A"
    if len(description) > DESCRIPTION_LIMIT:
        description = description[:DESCRIPTION_LIMIT].rstrip() + "..."

    main_content = "\n".join([
        f"• {NUMBER_LABELS.get(record_type, 'Number')}: {record.number or 'N/A'}",
        f"• Category: {record.category or 'N/A'}",
        f"• Lifecycle: {record.lifecycle_phase or 'N/A'}",
        f"• Description: {description}",
    ])

    notes = [f"{record.number or 'N/A'} - {record.name or 'Unnamed record'}"]
    if reason:
        notes.append(f"AI summary unavailable: {reason}")
    return Summary(main_content=main_content, detailed_notes="\n".join(notes), used_fallback=True)


def fallback_synthesis(entries: List[CollectionEntry], reason: str = "") -> CollectionSynthesis:
    """One overview slide listing every record in the collection."""
    counts = Counter(entry.record_type.value for entry in entries)
    breakdown = ", ".join(f"{count} {name}" for name, count in sorted(counts.items()))
    synthesis = f"Collection of {len(entries)} records ({breakdown})." if entries else "Empty collection."

    listing = "\n".join(f"• {entry.record.number}: {entry.record.name}" for entry in entries)
    notes = synthesis if not reason else f"{synthesis}\nAI synthesis unavailable: {reason}"

    return CollectionSynthesis(
        synthesis=synthesis,
        structure="",
        slides=[SynthesisSlide(title=COLLECTION_FALLBACK_TITLE, main_content=listing, detailed_notes=notes)],
        used_fallback=True,
    )


class Summarizer:
    def __init__(self,
                 connector: GeminiConnector,
                 credentials: CredentialStore,
                 error_handler: Optional[ErrorHandler] = None,
                 config=None):
        self.connector = connector
        self.credentials = credentials
        self.error_handler = error_handler or ErrorHandler()
        self.config = config or get_config()

    def _api_key(self) -> str:
        return self.credentials.get_api_key() or self.config.GEMINI_API_KEY or ""

    def summarize_record(self,
                         record: Record,
                         user_intent: str = "",
                         position: int = 1,
                         total: int = 1,
                         record_type: Optional[RecordType] = None,
                         detail_level: Optional[DetailLevel] = None) -> Summary:
        """
        AI summary of one record for slide `position` of `total`.

        The record type is taken from the argument, then from the record
        itself, then inferred from its number prefix.
        """
        record_type = record_type or record.record_type or infer_record_type(record.number)
        detail_level = detail_level or self.credentials.get_detail_level()

        api_key = self._api_key()
        if not api_key:
            ai_logger.log_info("NO_API_KEY", "No Gemini key configured, using field summary",
                               {"number": record.number})
            return fallback_summary(record, record_type, "no API key configured")

        summary = None
        with self.error_handler.create_context_manager(
            ErrorCategory.AI_SUMMARY, ErrorSeverity.HIGH_DEGRADE,
            operation="summarize_record", context=record.number
        ) as ctx:
            schema = self.credentials.get_schema_config().for_type(record_type)
            prompt = build_record_prompt(record, record_type, schema, user_intent,
                                         position, total, detail_level)
            text = self.connector.generate(prompt, api_key)
            summary = parse_summary_response(text)
            if not summary.main_content.strip():
                raise AIServiceError("AI response had no slide content")

        if ctx.failed or summary is None:
            return fallback_summary(record, record_type, str(ctx.error or "unknown error"))
        return summary

    def synthesize_collection(self, entries: List[CollectionEntry], user_intent: str = "",
                              detail_level: Optional[DetailLevel] = None) -> CollectionSynthesis:
        """One AI call over the whole collection; the model proposes the slides."""
        detail_level = detail_level or self.credentials.get_detail_level()

        api_key = self._api_key()
        if not api_key:
            return fallback_synthesis(entries, "no API key configured")

        synthesis = None
        with self.error_handler.create_context_manager(
            ErrorCategory.AI_SYNTHESIS, ErrorSeverity.HIGH_DEGRADE,
            operation="synthesize_collection", context=f"{len(entries)} records"
        ) as ctx:
            schemas = self.credentials.get_schema_config()
            prompt = build_collection_prompt(entries, schemas, user_intent, detail_level)
            synthesis = parse_collection_response(self.connector.generate(prompt, api_key))

        if ctx.failed or synthesis is None:
            return fallback_synthesis(entries, str(ctx.error or "unknown error"))
        return synthesis
