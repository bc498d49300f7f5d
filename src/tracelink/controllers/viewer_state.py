"""
Viewer State

What the viewer currently knows about the backend, folded from the
inbound event stream.
"""

from dataclasses import dataclass, field
from typing import Any

from ..communication.messages import (
    InboundMessage,
    MemoryLayout,
    SocketClosed,
    SocketOpened,
    StatusUpdate,
    WorkingDirsConfig,
)


def _apply_delta(current: bool, delta: int) -> bool:
    """+1 sets, -1 clears, 0 keeps the flag."""
    if delta > 0:
        return True
    if delta < 0:
        return False
    return current


@dataclass
class ViewerState:
    """Backend state as seen by the viewer."""

    # Memory layout (module index = target id in transaction records)
    modules: list[str] = field(default_factory=list)
    start_addrs: list[Any] = field(default_factory=list)
    end_addrs: list[Any] = field(default_factory=list)

    # Project setup advertised by the backend
    working_dirs: list[Any] = field(default_factory=list)
    working_vps: list[Any] = field(default_factory=list)

    # Status flags
    has_socket: bool = False
    has_vp: bool = False
    has_gdb: bool = False

    def apply(self, message: InboundMessage) -> None:
        """Fold one inbound event into the state."""
        if isinstance(message, MemoryLayout):
            self.modules = message.module_names
            self.start_addrs = list(message.start_addrs or [])
            self.end_addrs = list(message.end_addrs or [])

        elif isinstance(message, WorkingDirsConfig):
            self.working_dirs = list(message.dirs) if isinstance(message.dirs, list) else [message.dirs]
            self.working_vps = list(message.vps) if isinstance(message.vps, list) else [message.vps]

        elif isinstance(message, StatusUpdate):
            self.has_vp = _apply_delta(self.has_vp, message.vp)
            self.has_gdb = _apply_delta(self.has_gdb, message.gdb)

        elif isinstance(message, SocketOpened):
            self.has_socket = True

        elif isinstance(message, SocketClosed):
            self.has_socket = False
            self.has_vp = False
            self.has_gdb = False
