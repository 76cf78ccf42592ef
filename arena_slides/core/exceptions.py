#!/usr/bin/env python3
"""
Exception taxonomy for Arena Slides.

The PLM and AI clients only ever raise these (or let genuinely unexpected
errors through). The orchestrator turns them into OperationResult messages.
"""

from typing import Optional


class ArenaSlidesError(Exception):
    """Base class for every error raised on purpose by this package."""
    pass


class ArenaAPIError(ArenaSlidesError):
    """Non-2xx response that has no more specific meaning."""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        self.status_code = status_code
        self.body = body or ""
        super().__init__(message or f"Arena API error {status_code}: {self.body[:500]}")


class AuthExpiredError(ArenaAPIError):
    """HTTP 401 that survived the single retry."""

    def __init__(self, message: str = "Your Arena session has expired. Please log in again.", body: str = ""):
        super().__init__(401, body, message)


class ValidationError(ArenaAPIError):
    """HTTP 400 carrying the backend's first validation message."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(400, body, message)


class ConflictError(ArenaAPIError):
    """HTTP 409."""

    MESSAGE = "The record was modified by someone else or is locked. Refresh and try again."

    def __init__(self, body: str = ""):
        super().__init__(409, body, self.MESSAGE)


class FeatureUnavailableError(ArenaSlidesError):
    """Every candidate endpoint for a workspace-dependent feature failed."""

    def __init__(self, feature: str, guidance: str = ""):
        self.feature = feature
        self.guidance = guidance
        message = f"{feature} is not available in this workspace."
        if guidance:
            message = f"{message} {guidance}"
        super().__init__(message)


class NetworkOrParseError(ArenaSlidesError):
    """Connection failure, timeout, or a body that is not JSON."""
    pass


class NotLoggedInError(ArenaSlidesError):
    """An operation needs a session token and none is stored."""

    def __init__(self, message: str = "Not logged in to Arena. Please log in first."):
        super().__init__(message)


class AIServiceError(ArenaSlidesError):
    """Any failure talking to the generative text API.

    Never escapes the summarizer - it only drives the deterministic fallback.
    """
    pass
