"""
Controllers Package

Contains the Qt-facing trace controller and the viewer state it maintains.
"""

from .trace_controller import TraceController
from .viewer_state import ViewerState

__all__ = [
    'TraceController',
    'ViewerState',
]
