#!/usr/bin/env python3
"""
SlideOrchestrator - the operations a user can invoke

Each public method returns an OperationResult and never raises: a catch-all
turns any failure into {success: False, message} after logging full detail
through the ErrorHandler.

Batches (generate, collection, refresh) run one record at a time. A record
that fails is logged and skipped. A batch that runs past the wall-clock
budget stops early and reports what it finished.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import requests

from arena_slides.ai.gemini_client import GeminiConnector
from arena_slides.ai.summarizer import Summarizer
from arena_slides.core.config import get_config
from arena_slides.core.datashapes import (
    CollectionEntry,
    DetailLevel,
    ImageAttachment,
    OperationResult,
    Record,
    RecordType,
)
from arena_slides.core.error_handler import ErrorCategory, ErrorHandler, ErrorSeverity
from arena_slides.core.exceptions import (
    ArenaSlidesError,
    AuthExpiredError,
    NotLoggedInError,
)
from arena_slides.core.logging_utils import ArenaLogger
from arena_slides.plm.client import ArenaClient
from arena_slides.plm.session import SessionManager
from arena_slides.presentation.writer import PresentationWriter
from arena_slides.schema.discovery import SchemaDiscovery
from arena_slides.settings.collection_history import CollectionHistory
from arena_slides.settings.credential_store import CredentialStore
from arena_slides.settings.repository import SettingsRepository, SQLiteSettingsRepository

ops_logger = ArenaLogger("arena_slides.orchestrator")

# A selection is a Record or a stored history entry {guid, number, name, type}
Selection = Union[Record, Dict[str, Any]]


class BudgetClock:
    """Wall-clock budget for one batch operation."""

    def __init__(self, budget_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.budget_seconds = budget_seconds
        self.clock = clock
        self.started = clock()

    @property
    def elapsed(self) -> float:
        return self.clock() - self.started

    def exhausted(self) -> bool:
        return self.elapsed >= self.budget_seconds


class SlideOrchestrator:
    def __init__(self,
                 config=None,
                 repository: Optional[SettingsRepository] = None,
                 arena_http: Optional[requests.Session] = None,
                 gemini_http: Optional[requests.Session] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 password_provider: Optional[Callable[[], Optional[str]]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or get_config()
        self.repository = repository or SQLiteSettingsRepository(self.config.SETTINGS_DB_PATH)
        self.error_handler = error_handler or ErrorHandler()
        self.clock = clock

        self.credentials = CredentialStore(self.repository)
        self.history = CollectionHistory(self.repository, self.config.COLLECTION_HISTORY_MAX)
        self.client = ArenaClient(self.credentials, self.config, arena_http, password_provider)
        self.sessions = SessionManager(self.client, self.credentials, self.config)
        self.connector = GeminiConnector(self.config, gemini_http)
        self.summarizer = Summarizer(self.connector, self.credentials, self.error_handler, self.config)
        self.schema = SchemaDiscovery(self.client, self.credentials, self.error_handler)

    # =========================================================================
    # CATCH-ALL
    # =========================================================================

    def _run(self, operation: str, func: Callable[..., OperationResult], *args, **kwargs) -> OperationResult:
        try:
            return func(*args, **kwargs)
        except (AuthExpiredError, NotLoggedInError) as e:
            self.error_handler.handle_error(e, ErrorCategory.PLM_AUTH, ErrorSeverity.HIGH_DEGRADE,
                                            operation=operation)
            return OperationResult(success=False, message=str(e))
        except ArenaSlidesError as e:
            self.error_handler.handle_error(e, ErrorCategory.OPERATION, ErrorSeverity.HIGH_DEGRADE,
                                            operation=operation)
            return OperationResult(success=False, message=str(e))
        except Exception as e:
            self.error_handler.handle_error(e, ErrorCategory.OPERATION, ErrorSeverity.HIGH_DEGRADE,
                                            operation=operation)
            return OperationResult(success=False, message=f"{operation} failed: {e}")

    # =========================================================================
    # SESSION
    # =========================================================================

    def login(self, email: str, password: str, workspace_id: Optional[str] = None) -> OperationResult:
        return self._run("login", self._login, email, password, workspace_id)

    def _login(self, email, password, workspace_id) -> OperationResult:
        if not email or not password:
            return OperationResult(success=False, message="Email and password are required.")
        session = self.sessions.login(email, password, workspace_id)
        return OperationResult(
            success=True,
            message=f"Logged in as {session.user_email}",
            data={"email": session.user_email, "workspace_id": session.workspace_id},
        )

    def logout(self) -> OperationResult:
        def _logout():
            self.sessions.logout()
            return OperationResult(success=True, message="Logged out.")
        return self._run("logout", _logout)

    def check_session(self) -> OperationResult:
        def _check():
            valid = self.sessions.is_session_valid()
            session = self.sessions.current_session()
            message = f"Logged in as {session.user_email}" if valid else "Not logged in."
            return OperationResult(success=True, message=message, data={
                "valid": valid,
                "email": session.user_email,
                "workspace_id": session.workspace_id,
            })
        return self._run("check_session", _check)

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search(self, term: str, record_type: Union[RecordType, str] = RecordType.ITEM,
               full_text: bool = False) -> OperationResult:
        return self._run("search", self._search, term, record_type, full_text)

    def _search(self, term, record_type, full_text) -> OperationResult:
        record_type = RecordType.from_value(record_type, default=RecordType.ITEM)
        if full_text:
            records = self.client.search_text(term, record_type)
        else:
            records = self.client.search_records(term, record_type)
        return OperationResult(
            success=True,
            message=f"Found {len(records)} {record_type.value} record(s) matching '{term}'",
            data=records,
        )

    # =========================================================================
    # BATCH HELPERS
    # =========================================================================

    @staticmethod
    def _selection_key(selection: Selection) -> Tuple[str, str, RecordType]:
        """(guid, number, type) of a Record or stored history entry."""
        if isinstance(selection, Record):
            return selection.guid, selection.number, selection.record_type
        guid = str(selection.get("guid") or "")
        number = str(selection.get("number") or "")
        record_type = RecordType.from_value(selection.get("type"), default=RecordType.ITEM)
        return guid, number, record_type

    def _fetch_full(self, selection: Selection) -> Record:
        guid, number, record_type = self._selection_key(selection)
        if guid:
            return self.client.get_record(guid, record_type)
        record = self.client.find_record_by_number(number, record_type)
        if record is None:
            raise ArenaSlidesError(f"{number or 'record'} not found in Arena")
        return self.client.get_record(record.guid, record_type)

    def _fetch_image(self, record: Record, include_images: bool) -> Optional[ImageAttachment]:
        """First image of an item; any failure just means no picture."""
        if not include_images or record.record_type != RecordType.ITEM:
            return None
        image = None
        with self.error_handler.create_context_manager(
            ErrorCategory.IMAGE_ATTACHMENT, ErrorSeverity.MEDIUM_ALERT,
            operation="fetch_image", context=record.number
        ):
            image = self.client.get_first_image(record.guid)
        return image

    def _record_failed(self, error: Exception, label: str, operation: str, skipped: List[str]) -> None:
        self.error_handler.handle_error(error, ErrorCategory.BATCH_RECORD, ErrorSeverity.HIGH_DEGRADE,
                                        context=label, operation=operation)
        skipped.append(label)

    def _budget(self) -> BudgetClock:
        return BudgetClock(self.config.OPERATION_TIME_BUDGET_SECONDS, self.clock)

    @staticmethod
    def _batch_message(verb: str, done: int, total: int, skipped: List[str], truncated: bool) -> str:
        message = f"{verb} {done} of {total} slide(s)"
        if skipped:
            message += f"; skipped {len(skipped)}: {', '.join(skipped)}"
        if truncated:
            message += "; stopped early (time budget exceeded)"
        return message

    # =========================================================================
    # SLIDE GENERATION
    # =========================================================================

    def generate_slides(self, selections: List[Selection], output_path: str, user_intent: str = "",
                        detail_level: Optional[Union[DetailLevel, str]] = None,
                        include_images: Optional[bool] = None) -> OperationResult:
        return self._run("generate_slides", self._generate_slides, selections, output_path,
                         user_intent, detail_level, include_images)

    def _generate_slides(self, selections, output_path, user_intent, detail_level, include_images):
        if not selections:
            return OperationResult(success=False, message="No records selected.")
        self.sessions.require_valid_session()

        level = DetailLevel.from_value(detail_level) if detail_level else self.credentials.get_detail_level()
        include_images = self.config.INCLUDE_IMAGES if include_images is None else include_images
        writer = PresentationWriter(output_path, self.credentials.get_slide_template(), self.error_handler)
        budget = self._budget()

        total = len(selections)
        created: List[str] = []
        skipped: List[str] = []
        fallbacks = 0
        truncated = False

        for position, selection in enumerate(selections, 1):
            if budget.exhausted():
                truncated = True
                ops_logger.log_warning("BUDGET_EXCEEDED", "Slide generation truncated", {
                    "completed": len(created), "total": total, "elapsed": round(budget.elapsed, 1),
                })
                break
            label = self._selection_key(selection)[1] or self._selection_key(selection)[0]
            try:
                record = self._fetch_full(selection)
                summary = self.summarizer.summarize_record(
                    record, user_intent, position, total, record.record_type, level
                )
                image = self._fetch_image(record, include_images)
                writer.create_slide(record, summary, image, record.record_type)
            except (AuthExpiredError, NotLoggedInError):
                raise
            except Exception as e:
                self._record_failed(e, label, "generate_slides", skipped)
                continue
            created.append(record.number)
            fallbacks += int(summary.used_fallback)

        if created:
            writer.save(output_path)

        return OperationResult(
            success=bool(created),
            message=self._batch_message("Created", len(created), total, skipped, truncated),
            data={
                "path": output_path if created else None,
                "created": created,
                "skipped": skipped,
                "fallback_summaries": fallbacks,
                "truncated": truncated,
            },
        )

    def generate_collection_slides(self, selections: List[Selection], output_path: str,
                                   user_intent: str = "", collection_name: Optional[str] = None,
                                   include_images: Optional[bool] = None) -> OperationResult:
        return self._run("generate_collection_slides", self._generate_collection_slides,
                         selections, output_path, user_intent, collection_name, include_images)

    def _generate_collection_slides(self, selections, output_path, user_intent, collection_name, include_images):
        if not selections:
            return OperationResult(success=False, message="No records selected.")
        self.sessions.require_valid_session()

        include_images = self.config.INCLUDE_IMAGES if include_images is None else include_images
        budget = self._budget()
        entries: List[CollectionEntry] = []
        skipped: List[str] = []
        truncated = False

        for selection in selections:
            if budget.exhausted():
                truncated = True
                break
            guid, number, _ = self._selection_key(selection)
            try:
                record = self._fetch_full(selection)
                images = []
                if include_images and record.record_type == RecordType.ITEM:
                    images = self._image_names(record)
            except (AuthExpiredError, NotLoggedInError):
                raise
            except Exception as e:
                self._record_failed(e, number or guid, "generate_collection_slides", skipped)
                continue
            entries.append(CollectionEntry(record=record, record_type=record.record_type, images=images))

        if not entries:
            return OperationResult(success=False, message="None of the selected records could be loaded.",
                                   data={"skipped": skipped})

        synthesis = self.summarizer.synthesize_collection(entries, user_intent)
        writer = PresentationWriter(output_path, self.credentials.get_slide_template(), self.error_handler)
        slides = writer.add_synthesis_slides(synthesis)
        writer.save(output_path)

        if collection_name:
            self.history.save_collection(collection_name, [entry.record for entry in entries])

        message = f"Created {len(slides)} collection slide(s) from {len(entries)} record(s)"
        if skipped:
            message += f"; skipped {len(skipped)}: {', '.join(skipped)}"
        if truncated:
            message += "; stopped early (time budget exceeded)"
        return OperationResult(success=True, message=message, data={
            "path": output_path,
            "slides": len(slides),
            "records": len(entries),
            "skipped": skipped,
            "used_fallback": synthesis.used_fallback,
            "truncated": truncated,
        })

    def _image_names(self, record: Record) -> List[str]:
        names: List[str] = []
        with self.error_handler.create_context_manager(
            ErrorCategory.IMAGE_ATTACHMENT, ErrorSeverity.LOW_DEBUG,
            operation="list_images", context=record.number
        ):
            names = self.client.image_file_names(record.guid)
        return names

    # =========================================================================
    # REFRESH
    # =========================================================================

    def refresh_slides(self, path: str, user_intent: str = "",
                       include_images: Optional[bool] = None) -> OperationResult:
        return self._run("refresh_slides", self._refresh_slides, path, user_intent, include_images)

    def _refresh_slides(self, path, user_intent, include_images):
        self.sessions.require_valid_session()
        include_images = self.config.INCLUDE_IMAGES if include_images is None else include_images

        writer = PresentationWriter(path, self.credentials.get_slide_template(), self.error_handler)
        targets = writer.find_generated_slides()
        if not targets:
            return OperationResult(success=False, message="No generated slides found in this presentation.")

        level = self.credentials.get_detail_level()
        budget = self._budget()
        total = len(targets)
        refreshed: List[str] = []
        skipped: List[str] = []
        by_title = 0
        truncated = False

        for position, target in enumerate(targets, 1):
            if budget.exhausted():
                truncated = True
                break
            label = target.guid or target.number or f"slide {target.index + 1}"
            try:
                if target.guid:
                    record = self.client.get_record(target.guid, target.record_type)
                else:
                    # Legacy slides: numbers are not guaranteed unique over time
                    found = self.client.find_record_by_number(target.number, target.record_type)
                    if found is None:
                        raise ArenaSlidesError(f"{target.number} not found in Arena")
                    record = self.client.get_record(found.guid, target.record_type)
                summary = self.summarizer.summarize_record(
                    record, user_intent, position, total, target.record_type, level
                )
                image = self._fetch_image(record, include_images)
                writer.update_slide(target.slide, record, summary, image, target.record_type)
            except (AuthExpiredError, NotLoggedInError):
                raise
            except Exception as e:
                self.error_handler.handle_error(e, ErrorCategory.SLIDE_REFRESH, ErrorSeverity.HIGH_DEGRADE,
                                                context=label, operation="refresh_slides")
                skipped.append(label)
                continue
            refreshed.append(record.number)
            by_title += int(target.source == "legacy")

        if refreshed:
            writer.save(path)

        return OperationResult(
            success=bool(refreshed),
            message=self._batch_message("Refreshed", len(refreshed), total, skipped, truncated),
            data={
                "path": path,
                "refreshed": refreshed,
                "skipped": skipped,
                "matched_by_title": by_title,
                "truncated": truncated,
            },
        )

    # =========================================================================
    # SCHEMA & SETTINGS
    # =========================================================================

    def discover_schema(self) -> OperationResult:
        def _discover():
            self.sessions.require_valid_session()
            result = self.schema.refresh_schema()
            return OperationResult(success=True, message="Schema refreshed.", data={
                "available": result["available"],
                "active": result["active"].to_dict(),
            })
        return self._run("discover_schema", _discover)

    def update_schema_selection(self, record_type: Union[RecordType, str], fields: List[str],
                                instructions: Optional[str] = None) -> OperationResult:
        def _update():
            resolved = RecordType.from_value(record_type)
            if resolved is None:
                return OperationResult(success=False, message=f"Unknown record type: {record_type}")
            config = self.schema.update_selection(resolved, fields, instructions)
            return OperationResult(success=True, message=f"Saved {resolved.value} field selection.",
                                   data=config.to_dict())
        return self._run("update_schema_selection", _update)

    def set_api_key(self, api_key: str, verify: bool = False) -> OperationResult:
        def _set():
            if not api_key or not api_key.strip():
                self.credentials.clear_api_key()
                return OperationResult(success=True, message="Gemini API key removed.")
            if verify and not self.connector.test_connection(api_key.strip()):
                return OperationResult(success=False, message="Gemini rejected that API key.")
            self.credentials.save_api_key(api_key.strip())
            return OperationResult(success=True, message="Gemini API key saved.")
        return self._run("set_api_key", _set)

    def update_preferences(self, detail_level: Optional[str] = None,
                           slide_template: Optional[str] = None) -> OperationResult:
        def _update():
            if detail_level is not None:
                self.credentials.save_detail_level(detail_level)
            if slide_template is not None:
                self.credentials.save_slide_template(slide_template)
            level, template = self.credentials.get_preferences()
            return OperationResult(success=True, message="Preferences saved.", data={
                "detail_level": level.value,
                "slide_template": template,
            })
        return self._run("update_preferences", _update)

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def save_collection(self, name: str, records: List[Record]) -> OperationResult:
        def _save():
            collection = self.history.save_collection(name, records)
            return OperationResult(success=True, message=f"Saved collection '{collection.name}'",
                                   data=collection.to_dict())
        return self._run("save_collection", _save)

    def list_collections(self) -> OperationResult:
        def _list():
            collections = self.history.list_collections()
            return OperationResult(success=True, message=f"{len(collections)} saved collection(s)",
                                   data=[collection.to_dict() for collection in collections])
        return self._run("list_collections", _list)

    def load_collection(self, name: str) -> OperationResult:
        def _load():
            collection = self.history.get_collection(name)
            if collection is None:
                return OperationResult(success=False, message=f"No saved collection named '{name}'")
            return OperationResult(success=True, message=f"Loaded '{collection.name}'",
                                   data=collection.to_dict())
        return self._run("load_collection", _load)

    def delete_collection(self, name: str) -> OperationResult:
        def _delete():
            if not self.history.delete_collection(name):
                return OperationResult(success=False, message=f"No saved collection named '{name}'")
            return OperationResult(success=True, message=f"Deleted '{name}'")
        return self._run("delete_collection", _delete)
