"""
TraceLink Test Configuration and Fixtures
"""

import time

import pytest
from PyQt6.QtCore import QCoreApplication

from tracelink.utils.error_handler import ErrorHandler, set_error_handler


@pytest.fixture(scope='session')
def qapp():
    """Create QCoreApplication instance for all tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def error_handler():
    """Install a fresh global error handler for one test."""
    handler = ErrorHandler()
    set_error_handler(handler)
    yield handler
    set_error_handler(None)


def _wait_until(predicate, timeout: float = 3.0, app=None, interval: float = 0.01) -> bool:
    """Poll until predicate() is true, processing Qt events if an app is given."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if app is not None:
            app.processEvents()
        if predicate():
            return True
        time.sleep(interval)
    if app is not None:
        app.processEvents()
    return predicate()


@pytest.fixture
def wait_until():
    """Polling helper for events delivered from the worker thread."""
    return _wait_until

