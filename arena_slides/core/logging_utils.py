#!/usr/bin/env python3
"""
Logging helpers for Arena Slides.

ArenaLogger is the coded component logger: every message carries an event
code and an optional context dict, e.g.

    plm_logger.log_info("REQUEST_OK", "GET /items", {"status_code": 200})
"""

import logging
import os
from typing import Any, Dict, Optional, Tuple

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Context keys that must never reach a log file
_REDACTED_KEYS = {"password", "session_token", "arena_session_id", "api_key", "key"}


def _redact(context: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not context:
        return context
    return {k: ("***" if k.lower() in _REDACTED_KEYS else v) for k, v in context.items()}


class ArenaLogger:
    """Thin wrapper over logging.Logger that standardises code + context."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _format(self, code: str, message: str, context: Optional[Dict[str, Any]]) -> str:
        context = _redact(context)
        if context:
            return f"{code}: {message} | {context}"
        return f"{code}: {message}"

    def log_error(self, code: str, message: str, context: Dict[str, Any] = None, exc_info: bool = False):
        """Log an error with context"""
        self.logger.error(self._format(code, message, context), exc_info=exc_info)

    def log_info(self, code: str, message: str, context: Dict[str, Any] = None):
        """Log an informational message with context"""
        self.logger.info(self._format(code, message, context))

    def log_warning(self, code: str, message: str, context: Dict[str, Any] = None):
        """Log a warning with context"""
        self.logger.warning(self._format(code, message, context))

    def log_debug(self, code: str, message: str, context: Dict[str, Any] = None):
        self.logger.debug(self._format(code, message, context))


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> Tuple[logging.Logger, Optional[str]]:
    """
    Configure the package root logger once.

    Args:
        level: Level name (DEBUG, INFO, ...)
        log_file: Optional path for a persistent log file

    Returns:
        (package logger, resolved log file path or None)
    """
    logger = logging.getLogger("arena_slides")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(logging.WARNING)
        logger.addHandler(stream_handler)

        if log_file:
            log_dir = os.path.dirname(os.path.abspath(log_file))
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger, log_file
