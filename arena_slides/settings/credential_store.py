#!/usr/bin/env python3
"""
Credential & preference store

Typed accessors over a SettingsRepository for everything the add-on
remembers per user: the Arena session (never the password), the Gemini API
key, the schema configuration blob, display preferences and the advisory
session-validity cache.

Reads never raise; unset values come back as "" / defaults.
"""

import logging
import time
from typing import Callable, Optional, Tuple

from arena_slides.core.datashapes import DetailLevel, SchemaConfig, Session
from arena_slides.settings.repository import SettingsRepository

logger = logging.getLogger(__name__)

# Keys
KEY_EMAIL = "arena_email"
KEY_SESSION_TOKEN = "arena_session_id"
KEY_WORKSPACE_ID = "arena_workspace_id"
KEY_SESSION_TIMESTAMP = "arena_session_timestamp"
KEY_API_KEY = "gemini_api_key"
KEY_SCHEMA_CONFIG = "schema_config"
KEY_DETAIL_LEVEL = "detail_level"
KEY_SLIDE_TEMPLATE = "slide_template"
KEY_SESSION_VALID = "session_valid_cache"
KEY_SESSION_CHECKED_AT = "session_valid_checked_at"

SESSION_KEYS = (KEY_EMAIL, KEY_SESSION_TOKEN, KEY_WORKSPACE_ID, KEY_SESSION_TIMESTAMP)

DEFAULT_SLIDE_TEMPLATE = "title_and_content"


class CredentialStore:
    """User-scoped credentials and preferences."""

    def __init__(self, repository: SettingsRepository, clock: Callable[[], float] = time.time):
        self.repository = repository
        self.clock = clock

    # =========================================================================
    # SESSION
    # =========================================================================

    def save_session(self, session: Session) -> None:
        self.repository.set(KEY_EMAIL, session.user_email)
        self.repository.set(KEY_SESSION_TOKEN, session.session_token)
        self.repository.set(KEY_WORKSPACE_ID, session.workspace_id)
        self.repository.set(KEY_SESSION_TIMESTAMP, session.created_at)
        # A fresh login is known-good
        self.set_session_cache(True)

    def get_session(self) -> Session:
        return Session(
            session_token=self.get_session_token(),
            user_email=self.get_email(),
            workspace_id=self.get_workspace_id(),
            created_at=self.repository.get(KEY_SESSION_TIMESTAMP, ""),
        )

    def get_session_token(self) -> str:
        return self.repository.get(KEY_SESSION_TOKEN, "")

    def get_email(self) -> str:
        return self.repository.get(KEY_EMAIL, "")

    def get_workspace_id(self) -> str:
        return self.repository.get(KEY_WORKSPACE_ID, "")

    def invalidate_session_token(self) -> None:
        """Drop only the token; email and workspace stay for the next login prompt."""
        self.repository.delete(KEY_SESSION_TOKEN)
        self.clear_session_cache()

    def clear_session(self) -> None:
        self.repository.delete_many(*SESSION_KEYS)
        self.clear_session_cache()

    # =========================================================================
    # SESSION VALIDITY CACHE (advisory only)
    # =========================================================================

    def set_session_cache(self, is_valid: bool) -> None:
        self.repository.set(KEY_SESSION_VALID, "true" if is_valid else "false")
        self.repository.set(KEY_SESSION_CHECKED_AT, str(self.clock()))

    def get_session_cache(self, ttl_seconds: int) -> Optional[bool]:
        """
        Cached validity if it is still fresh.

        Returns:
            True/False when a cache entry younger than ttl_seconds exists,
            None when there is no usable entry.
        """
        flag = self.repository.get(KEY_SESSION_VALID, "")
        checked_at = self.repository.get(KEY_SESSION_CHECKED_AT, "")
        if flag not in ("true", "false") or not checked_at:
            return None
        try:
            age = self.clock() - float(checked_at)
        except ValueError:
            return None
        if age < 0 or age >= ttl_seconds:
            return None
        return flag == "true"

    def clear_session_cache(self) -> None:
        self.repository.delete_many(KEY_SESSION_VALID, KEY_SESSION_CHECKED_AT)

    # =========================================================================
    # API KEY
    # =========================================================================

    def save_api_key(self, api_key: str) -> None:
        self.repository.set(KEY_API_KEY, api_key.strip())

    def get_api_key(self) -> str:
        return self.repository.get(KEY_API_KEY, "")

    def clear_api_key(self) -> None:
        self.repository.delete(KEY_API_KEY)

    # =========================================================================
    # SCHEMA CONFIGURATION
    # =========================================================================

    def save_schema_config(self, config: SchemaConfig) -> None:
        self.repository.set(KEY_SCHEMA_CONFIG, config.to_json())

    def get_schema_config(self) -> SchemaConfig:
        return SchemaConfig.from_json(self.repository.get(KEY_SCHEMA_CONFIG, ""))

    def clear_schema_config(self) -> None:
        self.repository.delete(KEY_SCHEMA_CONFIG)

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    def save_detail_level(self, level) -> None:
        if not isinstance(level, DetailLevel):
            level = DetailLevel.from_value(level)
        self.repository.set(KEY_DETAIL_LEVEL, level.value)

    def get_detail_level(self) -> DetailLevel:
        return DetailLevel.from_value(self.repository.get(KEY_DETAIL_LEVEL, DetailLevel.MEDIUM.value))

    def save_slide_template(self, template: str) -> None:
        self.repository.set(KEY_SLIDE_TEMPLATE, template)

    def get_slide_template(self) -> str:
        return self.repository.get(KEY_SLIDE_TEMPLATE, DEFAULT_SLIDE_TEMPLATE) or DEFAULT_SLIDE_TEMPLATE

    def get_preferences(self) -> Tuple[DetailLevel, str]:
        return self.get_detail_level(), self.get_slide_template()
