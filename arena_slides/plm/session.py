#!/usr/bin/env python3
"""
Session lifecycle for the Arena connection

is_session_valid() is the cheap advisory check for UI affordances (menus,
status lines). Anything that actually needs a working session calls
require_valid_session(), which always goes to the backend.
"""

from typing import Optional

from arena_slides.core.config import get_config
from arena_slides.core.datashapes import Session
from arena_slides.core.exceptions import (
    ArenaAPIError,
    AuthExpiredError,
    NetworkOrParseError,
    NotLoggedInError,
)
from arena_slides.core.logging_utils import ArenaLogger
from arena_slides.plm.client import ArenaClient
from arena_slides.settings.credential_store import CredentialStore

session_logger = ArenaLogger("arena_slides.session")


class SessionManager:
    """Login/logout plus the 5-minute session-validity cache."""

    def __init__(self, client: ArenaClient, credentials: CredentialStore, config=None):
        self.client = client
        self.credentials = credentials
        self.config = config or get_config()
        self.cache_ttl = self.config.SESSION_CACHE_TTL_SECONDS

    def login(self, email: str, password: str, workspace_id: Optional[str] = None) -> Session:
        return self.client.login(email, password, workspace_id)

    def logout(self) -> None:
        self.client.logout()

    def current_session(self) -> Session:
        return self.credentials.get_session()

    def is_session_valid(self) -> bool:
        """
        Advisory validity check.

        1. No token -> False, no network call
        2. Fresh cached answer (< TTL) -> cached answer
        3. Otherwise one live validation, cached for the next TTL window
        """
        if not self.credentials.get_session_token():
            return False

        cached = self.credentials.get_session_cache(self.cache_ttl)
        if cached is not None:
            return cached

        try:
            is_valid = self.client.validate_session()
        except (NetworkOrParseError, ArenaAPIError) as e:
            # Unknown is not the same as invalid; leave the cache empty
            session_logger.log_warning("VALIDATION_UNAVAILABLE", "Could not validate session", {"error": str(e)})
            return False

        self.credentials.set_session_cache(is_valid)
        return is_valid

    def require_valid_session(self) -> Session:
        """Live check; raises AuthExpiredError when the backend rejects the token."""
        if not self.credentials.get_session_token():
            raise NotLoggedInError()
        if not self.client.validate_session():
            self.credentials.set_session_cache(False)
            raise AuthExpiredError()
        self.credentials.set_session_cache(True)
        return self.credentials.get_session()
