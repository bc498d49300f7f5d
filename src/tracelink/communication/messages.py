"""
TraceLink Worker Messages

Commands sent from the host to the trace worker, and events sent back.
Every event carries a `kind` tag so the host can dispatch on it without
isinstance chains.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class MessageKind(Enum):
    """Event tags published on the worker event channel."""
    BINARY_FRAME = "binary"
    WORKING_DIRS = "working_dirs"
    MEMORY_LAYOUT = "layout"
    STATUS = "status"
    START = "start"
    OPTIONS = "options"
    SOCKET_OPENED = "socket_opened"
    SOCKET_CLOSED = "socket_closed"
    SOCKET_ERROR = "socket_error"


# ============================================================================
# Inbound events (worker -> host)
# ============================================================================

@dataclass(frozen=True)
class BinaryFrame:
    """Raw transaction frame, decoded later on the host side."""
    data: bytes
    kind: MessageKind = field(default=MessageKind.BINARY_FRAME, init=False)


@dataclass(frozen=True)
class WorkingDirsConfig:
    """Project working directories and virtual prototypes available on the backend."""
    dirs: Any
    vps: Any
    kind: MessageKind = field(default=MessageKind.WORKING_DIRS, init=False)


@dataclass(frozen=True)
class MemoryLayout:
    """Module table of the running prototype; index = target id in records."""
    modules: Any
    start_addrs: Any
    end_addrs: Any
    kind: MessageKind = field(default=MessageKind.MEMORY_LAYOUT, init=False)

    @property
    def module_names(self) -> list[str]:
        """Module names usable by the frame decoder."""
        if not isinstance(self.modules, (list, tuple)):
            return []
        return [str(name) for name in self.modules]


@dataclass(frozen=True)
class StatusUpdate:
    """Status delta: +1 became active, -1 became inactive, 0 unchanged."""
    vp: int = 0
    gdb: int = 0
    kind: MessageKind = field(default=MessageKind.STATUS, init=False)


@dataclass(frozen=True)
class StartNotice:
    """Backend acknowledged a Start command."""
    value: Any
    kind: MessageKind = field(default=MessageKind.START, init=False)


@dataclass(frozen=True)
class OptionsNotice:
    """Backend options (e.g. gdb proxy port)."""
    value: Any
    kind: MessageKind = field(default=MessageKind.OPTIONS, init=False)


@dataclass(frozen=True)
class SocketOpened:
    address: str
    kind: MessageKind = field(default=MessageKind.SOCKET_OPENED, init=False)


@dataclass(frozen=True)
class SocketClosed:
    kind: MessageKind = field(default=MessageKind.SOCKET_CLOSED, init=False)


@dataclass(frozen=True)
class SocketError:
    kind: MessageKind = field(default=MessageKind.SOCKET_ERROR, init=False)


InboundMessage = Union[
    BinaryFrame,
    WorkingDirsConfig,
    MemoryLayout,
    StatusUpdate,
    StartNotice,
    OptionsNotice,
    SocketOpened,
    SocketClosed,
    SocketError,
]


# ============================================================================
# Outbound commands (host -> worker)
# ============================================================================

@dataclass(frozen=True)
class OpenCommand:
    """Open the backend connection at host[:port]."""
    address: str


@dataclass(frozen=True)
class SendCommand:
    """Send a JSON-serializable payload, reconnecting first if needed."""
    payload: Any


@dataclass(frozen=True)
class ResetCommand:
    """Re-open the last address if the connection is not open."""


WorkerCommand = Union[OpenCommand, SendCommand, ResetCommand]
