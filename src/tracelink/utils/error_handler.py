"""
Centralized Error Handler

Every problem the host sees ends up here: backend socket errors, malformed
transaction frames, failing slots and uncaught exceptions. Each one is
logged, kept in a short history, counted per category and announced
through a signal.
"""

from collections import Counter, deque
from typing import Optional
from PyQt6.QtCore import QObject, pyqtSignal
from enum import Enum, auto
from dataclasses import dataclass, field
from datetime import datetime
import traceback
import logging
import sys

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = auto()
    WARNING = auto()    # Frame dropped, socket lost; the session goes on
    ERROR = auto()      # A host operation failed
    CRITICAL = auto()   # Uncaught exception


class ErrorCategory(Enum):
    """Where an error came from."""
    NETWORK = "network"         # Backend socket errors
    PROTOCOL = "protocol"       # Malformed frames, failing event dispatch
    CONFIG = "config"           # Settings loading and validation
    INTERNAL = "internal"       # Programming errors
    UNKNOWN = "unknown"


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorInfo:
    """One reported problem."""
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    exception: Optional[BaseException] = None
    details: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self):
        return f"[{self.severity.name}] {self.category.value}: {self.message}"


class ErrorHandler(QObject):
    """
    Collects host-side errors for one TraceLink session.

    The history keeps the most recent errors only; the per-category
    counts cover the whole session and are logged by the CLI at exit.
    """

    error_occurred = pyqtSignal(object)  # ErrorInfo
    warning_occurred = pyqtSignal(str)

    def __init__(self, parent: QObject = None, max_history: int = 100):
        super().__init__(parent)
        self._history: deque[ErrorInfo] = deque(maxlen=max_history)
        self._counts: Counter = Counter()
        self._original_excepthook = sys.excepthook

    def install_global_handler(self):
        """Report uncaught exceptions instead of printing them."""
        self._original_excepthook = sys.excepthook
        sys.excepthook = self._global_exception_handler

    def uninstall_global_handler(self):
        sys.excepthook = self._original_excepthook

    def _global_exception_handler(self, exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            self._original_excepthook(exc_type, exc_value, exc_traceback)
            return

        self.handle(ErrorInfo(
            message=f"Unhandled exception: {exc_value}",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.INTERNAL,
            exception=exc_value,
            details="".join(traceback.format_exception(exc_type, exc_value, exc_traceback)),
        ))

    def handle(self, error: ErrorInfo):
        """Record, log and announce an error."""
        self._record(error)

        text = f"[{error.category.value}] {error.message}"
        if error.details:
            text += f"\n{error.details}"
        logger.log(_LOG_LEVELS[error.severity], text)

        self.error_occurred.emit(error)

    def handle_exception(self, exception: Exception, message: str = "",
                         category: ErrorCategory = ErrorCategory.UNKNOWN,
                         severity: ErrorSeverity = ErrorSeverity.ERROR):
        """
        Report a caught exception with its traceback.

        Args:
            exception: The exception that occurred
            message: Custom message (uses the exception text if empty)
            category: Error category
            severity: Error severity
        """
        self.handle(ErrorInfo(
            message=message or f"{type(exception).__name__}: {exception}",
            severity=severity,
            category=category,
            exception=exception,
            details="".join(traceback.format_exception(type(exception), exception, exception.__traceback__)),
        ))

    def warning(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN):
        """Record and log a warning, announced on warning_occurred only."""
        self._record(ErrorInfo(message=message, severity=ErrorSeverity.WARNING, category=category))
        logger.warning(f"[{category.value}] {message}")
        self.warning_occurred.emit(message)

    def get_history(self, category: Optional[ErrorCategory] = None) -> list[ErrorInfo]:
        """Recent errors, oldest first, optionally for one category."""
        if category is None:
            return list(self._history)
        return [e for e in self._history if e.category == category]

    def counts(self) -> dict[ErrorCategory, int]:
        """Errors and warnings reported this session, per category."""
        return dict(self._counts)

    def summary(self) -> str:
        """One-line session summary, e.g. 'network=2 protocol=5'."""
        if not self._counts:
            return "no errors"
        return " ".join(f"{category.value}={count}" for category, count in self._counts.items())

    def _record(self, error: ErrorInfo):
        self._history.append(error)
        self._counts[error.category] += 1


_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler


def set_error_handler(handler: Optional[ErrorHandler]):
    """Set the global error handler instance (None resets it)."""
    global _error_handler
    _error_handler = handler
