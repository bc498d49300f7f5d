"""
Decorators for common patterns in TraceLink.
"""
import functools
import logging
from typing import Callable, Any

from .error_handler import (
    get_error_handler,
    ErrorCategory,
    ErrorSeverity,
)

logger = logging.getLogger(__name__)


def safe_slot(category: ErrorCategory = ErrorCategory.INTERNAL,
              message: str = "",
              severity: ErrorSeverity = ErrorSeverity.ERROR):
    """
    Decorator for PyQt slots that wraps them in error handling.

    Catches exceptions and routes them through the centralized ErrorHandler,
    so a failing slot never raises into the Qt event loop or a worker thread.

    Usage:
        @safe_slot(category=ErrorCategory.PROTOCOL)
        def _on_event(self, event):
            ...

    Args:
        category: Error category for classification
        message: Custom error message (uses exception message if not provided)
        severity: Error severity level
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                error_handler = get_error_handler()
                error_msg = message or f"Error in {func.__name__}: {str(e)}"
                error_handler.handle_exception(
                    exception=e,
                    message=error_msg,
                    category=category,
                    severity=severity,
                )
                return None
        return wrapper
    return decorator
