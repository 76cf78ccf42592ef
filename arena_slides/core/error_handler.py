#!/usr/bin/env python3
"""
ErrorHandler - Centralized exception handling for Arena Slides

Every place that deliberately swallows an error (AI fallback, image
attachment, per-record batch isolation, the orchestration catch-all) routes
it through here so it is logged with full detail, counted, and surfaced to
the UI as an alert instead of disappearing.
"""

import traceback
import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum
from collections import defaultdict


class ErrorSeverity(Enum):
    """Error severity levels with clear action mappings"""
    CRITICAL_STOP = "critical_stop"       # Operation cannot continue, surface to the user
    HIGH_DEGRADE = "high_degrade"         # Feature broken, continue with degraded output
    MEDIUM_ALERT = "medium_alert"         # User should know, show in alerts
    LOW_DEBUG = "low_debug"               # Background issue, show only in debug mode


class ErrorCategory(Enum):
    """Error categories covering every component"""
    # PLM backend
    PLM_AUTH = "plm_auth"                    # Login, logout, session expiry
    PLM_REQUEST = "plm_request"              # Generic REST calls
    QUALITY_ENDPOINTS = "quality_endpoints"  # Workspace-dependent quality paths

    # AI
    AI_SUMMARY = "ai_summary"                # Single-record summarization
    AI_SYNTHESIS = "ai_synthesis"            # Multi-record synthesis

    # Schema & stores
    SCHEMA_DISCOVERY = "schema_discovery"
    SETTINGS = "settings"
    COLLECTION_HISTORY = "collection_history"

    # Presentation
    SLIDE_WRITE = "slide_write"
    SLIDE_REFRESH = "slide_refresh"
    IMAGE_ATTACHMENT = "image_attachment"

    # Orchestration
    BATCH_RECORD = "batch_record"            # One record inside a multi-record batch
    OPERATION = "operation"                  # Top-level user-invoked operation

    # Catch-all
    GENERAL = "general"


_SEVERITY_COLORS = {
    ErrorSeverity.CRITICAL_STOP: "red bold",
    ErrorSeverity.HIGH_DEGRADE: "red",
    ErrorSeverity.MEDIUM_ALERT: "yellow",
    ErrorSeverity.LOW_DEBUG: "dim yellow",
}

_CATEGORY_ICONS = {
    ErrorCategory.PLM_AUTH: "🔑",
    ErrorCategory.PLM_REQUEST: "🔌",
    ErrorCategory.QUALITY_ENDPOINTS: "🧪",
    ErrorCategory.AI_SUMMARY: "🤖",
    ErrorCategory.AI_SYNTHESIS: "🤖",
    ErrorCategory.SCHEMA_DISCOVERY: "🗂️",
    ErrorCategory.SETTINGS: "💾",
    ErrorCategory.COLLECTION_HISTORY: "📚",
    ErrorCategory.SLIDE_WRITE: "🖥️",
    ErrorCategory.SLIDE_REFRESH: "🔄",
    ErrorCategory.IMAGE_ATTACHMENT: "🖼️",
    ErrorCategory.BATCH_RECORD: "📄",
    ErrorCategory.OPERATION: "⚡",
    ErrorCategory.GENERAL: "⚠️",
}


class ErrorHandler:
    """Centralized error handling to replace scattered try/except blocks"""

    MAX_RECENT_ERRORS = 100

    def __init__(self, console=None, debug_mode: bool = False):
        self.console = console
        self.debug_mode = debug_mode

        # Error tracking
        self.error_counts = defaultdict(int)      # error_key -> count
        self.recent_errors: List[Dict[str, Any]] = []
        self.suppressed_errors = defaultdict(int)  # error_key -> count of suppressed
        self.last_error_time: Dict[str, datetime] = {}

        # Alert routing
        self.alert_queue: List[str] = []
        self.critical_alerts: List[str] = []

        self.logger = logging.getLogger('arena_slides.errors')

    def get_error_by_id(self, error_id: str) -> Optional[Dict[str, Any]]:
        """
        Find an error record by its ID.

        Args:
            error_id: The UUID of the error to find

        Returns:
            The error record if found, None otherwise
        """
        for error in self.recent_errors:
            if error.get('error_id') == error_id:
                return error
        return None

    def handle_error(self,
                     error: Exception,
                     category: ErrorCategory,
                     severity: ErrorSeverity,
                     context: str = "",
                     operation: str = "",
                     suppress_duplicate_minutes: int = 0) -> bool:
        """
        Central error handling method

        Args:
            error: The exception that occurred
            category: What type of error this is
            severity: How severe this error is
            context: Additional context about what was happening
            operation: What operation was being performed
            suppress_duplicate_minutes: Collapse identical errors inside this window

        Returns:
            bool: True if the error was handled and should not propagate,
            False for critical errors that the caller must re-raise
        """
        error_key = f"{category.value}_{type(error).__name__}"
        current_time = datetime.now()

        self.error_counts[error_key] += 1

        if self._should_suppress_error(error_key, current_time, suppress_duplicate_minutes):
            self.suppressed_errors[error_key] += 1
            return True

        self.last_error_time[error_key] = current_time

        error_message = self._format_error_message(error, category, context, operation)
        self._route_error(error_message, category, severity)

        error_id = str(uuid.uuid4())
        self.recent_errors.append({
            'error_id': error_id,
            'timestamp': current_time,
            'category': category.value,
            'severity': severity.value,
            'error_type': type(error).__name__,
            'message': str(error),
            'context': context,
            'operation': operation,
            'traceback': self._traceback_for(error),
        })

        if len(self.recent_errors) > self.MAX_RECENT_ERRORS:
            self.recent_errors.pop(0)

        # Full detail (message + stack) always goes to the log
        log_method = self.logger.error if severity in (
            ErrorSeverity.CRITICAL_STOP, ErrorSeverity.HIGH_DEGRADE
        ) else self.logger.warning
        log_method(f"{category.value}: {error_message}", exc_info=(type(error), error, error.__traceback__))

        return severity != ErrorSeverity.CRITICAL_STOP

    @staticmethod
    def _traceback_for(error: Exception) -> str:
        if error.__traceback__ is None:
            return ""
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))

    def _should_suppress_error(self, error_key: str, current_time: datetime, suppress_minutes: int) -> bool:
        """Check if this error should be suppressed due to recent similar errors"""
        if suppress_minutes <= 0 or error_key not in self.last_error_time:
            return False

        time_since_last = (current_time - self.last_error_time[error_key]).total_seconds()
        return time_since_last < (suppress_minutes * 60)

    def _format_error_message(self, error: Exception, category: ErrorCategory,
                              context: str, operation: str) -> str:
        """Format error message consistently with all metadata"""
        base_msg = str(error) or type(error).__name__
        if len(base_msg) > 200:
            base_msg = base_msg[:200] + "..."

        if context:
            base_msg = f"{context}: {base_msg}"

        if operation:
            base_msg = f"During {operation} - {base_msg}"

        error_key = f"{category.value}_{type(error).__name__}"
        count = self.error_counts.get(error_key, 1)
        if count > 1:
            base_msg += f" (#{count})"

        suppressed_count = self.suppressed_errors.get(error_key, 0)
        if suppressed_count > 0:
            base_msg += f" [+{suppressed_count} suppressed]"
            self.suppressed_errors[error_key] = 0

        return base_msg

    def _route_error(self, message: str, category: ErrorCategory, severity: ErrorSeverity):
        """Route error to appropriate display location"""
        color = _SEVERITY_COLORS.get(severity, "dim")
        icon = _CATEGORY_ICONS.get(category, "⚠️")
        formatted_message = f"[{color}]{icon} {message}[/{color}]"

        if severity == ErrorSeverity.CRITICAL_STOP:
            self.critical_alerts.append(formatted_message)
            if self.console:
                self.console.print(formatted_message)
        elif severity in (ErrorSeverity.HIGH_DEGRADE, ErrorSeverity.MEDIUM_ALERT):
            self.alert_queue.append(formatted_message)
        elif severity == ErrorSeverity.LOW_DEBUG and self.debug_mode:
            self.alert_queue.append(formatted_message)

    def get_alerts_for_ui(self, max_alerts: int = 8, clear_after: bool = True) -> List[str]:
        """Get alerts for UI display"""
        all_alerts = self.critical_alerts + self.alert_queue
        alerts = all_alerts[-max_alerts:] if len(all_alerts) > max_alerts else all_alerts

        if clear_after:
            self.critical_alerts = []
            self.alert_queue = []

        return alerts

    def get_error_summary(self) -> Dict[str, Any]:
        """Summary of error patterns for diagnostics"""
        total_errors = sum(self.error_counts.values())
        total_suppressed = sum(self.suppressed_errors.values())

        return {
            'total_errors': total_errors,
            'error_counts_by_type': dict(self.error_counts),
            'recent_error_count': len(self.recent_errors),
            'suppressed_count': total_suppressed,
            'categories_with_errors': sorted(set(e['category'] for e in self.recent_errors)),
            'most_common_errors': sorted(self.error_counts.items(), key=lambda x: x[1], reverse=True)[:5],
        }

    def create_context_manager(self, category: ErrorCategory, severity: ErrorSeverity,
                               operation: str = "", context: str = ""):
        """Create a context manager for wrapping risky operations"""
        return ErrorContext(self, category, severity, operation, context)


class ErrorContext:
    """Context manager for handling errors in specific operations"""

    def __init__(self, error_handler: ErrorHandler, category: ErrorCategory,
                 severity: ErrorSeverity, operation: str = "", context: str = ""):
        self.error_handler = error_handler
        self.category = category
        self.severity = severity
        self.operation = operation
        self.context = context
        self.error: Optional[BaseException] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False
        if not issubclass(exc_type, Exception):
            # KeyboardInterrupt / SystemExit are never swallowed
            return False
        self.error = exc_val
        return self.error_handler.handle_error(
            error=exc_val,
            category=self.category,
            severity=self.severity,
            context=self.context,
            operation=self.operation
        )

    @property
    def failed(self) -> bool:
        return self.error is not None
