"""
Trace Controller for TraceLink

Bridges the trace worker to the Qt host: worker events become signals,
binary frames are decoded into transactions with the current memory layout.
"""

import logging
from typing import Any, Callable, Optional
from PyQt6.QtCore import QObject, pyqtSignal

from ..communication.commands import CommandBuilder
from ..communication.messages import (
    BinaryFrame,
    InboundMessage,
    MemoryLayout,
    MessageKind,
    OptionsNotice,
    SocketOpened,
    StartNotice,
    StatusUpdate,
    WorkingDirsConfig,
)
from ..communication.trace_worker import TraceWorker
from ..communication.transaction import is_transaction_packet, parse_transactions
from ..communication.transport_base import TransportBase
from ..communication.websocket_transport import WebSocketTransport
from ..config import TraceConfig
from ..utils.decorators import safe_slot
from ..utils.error_handler import (
    ErrorCategory,
    ErrorInfo,
    ErrorSeverity,
    get_error_handler,
)
from .viewer_state import ViewerState


logger = logging.getLogger(__name__)


class TraceController(QObject):
    """Controller for the backend trace connection."""

    # Raw and decoded transaction frames
    frame_received = pyqtSignal(bytes)
    transactions_received = pyqtSignal(list)  # list[Transaction]

    # Control messages
    working_dirs_received = pyqtSignal(object, object)  # dirs, vps
    layout_received = pyqtSignal(object)  # MemoryLayout
    status_received = pyqtSignal(int, int)  # vp delta, gdb delta
    start_received = pyqtSignal(object)
    options_received = pyqtSignal(object)

    # Socket lifecycle
    socket_opened = pyqtSignal(str)  # address
    socket_closed = pyqtSignal()
    socket_error = pyqtSignal()

    # Worker events, queued to the thread this controller lives in
    _event_arrived = pyqtSignal(object)

    def __init__(
        self,
        config: Optional[TraceConfig] = None,
        transport_factory: Optional[Callable[[], TransportBase]] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._config = config or TraceConfig()
        if transport_factory is None:
            path = self._config.endpoint_path
            transport_factory = lambda: WebSocketTransport(path=path)

        self._state = ViewerState()
        self._worker = TraceWorker(
            event_handler=self._on_event,
            transport_factory=transport_factory,
            event_queue_size=self._config.event_queue_size,
        )

        self._event_arrived.connect(self._dispatch)

        self._handlers = {
            MessageKind.BINARY_FRAME: self._handle_frame,
            MessageKind.WORKING_DIRS: self._handle_working_dirs,
            MessageKind.MEMORY_LAYOUT: self._handle_layout,
            MessageKind.STATUS: self._handle_status,
            MessageKind.START: self._handle_start,
            MessageKind.OPTIONS: self._handle_options,
            MessageKind.SOCKET_OPENED: self._handle_socket_opened,
            MessageKind.SOCKET_CLOSED: self._handle_socket_closed,
            MessageKind.SOCKET_ERROR: self._handle_socket_error,
        }

    @property
    def viewer_state(self) -> ViewerState:
        """Backend state, updated only on the controller's thread."""
        return self._state

    @property
    def config(self) -> TraceConfig:
        return self._config

    def is_connected(self) -> bool:
        """Check if the backend socket is open."""
        return self._state.has_socket

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self):
        """Start the background worker."""
        self._worker.start()

    def shutdown(self):
        """Close the connection and stop the background worker."""
        self._worker.stop()

    # ========================================================================
    # Host commands
    # ========================================================================

    def open(self, address: Optional[str] = None):
        """
        Open the backend connection.

        Args:
            address: host[:port], defaults to the configured address
        """
        address = address or self._config.address
        self._config.address = address
        logger.info(f"Connecting to backend at {address}")
        self._worker.open(address)

    def send(self, payload: Any):
        """Send a JSON message, reconnecting first if the socket is not open."""
        self._worker.send(payload)

    def reset(self):
        """Re-open the last address if the socket is not open."""
        self._worker.reset()

    def request_status(self):
        self.send(CommandBuilder.status())

    def start_vp(self, vp: str, proj: str, args: str = "", gdb_arch: str = ""):
        """Ask the backend to start a virtual prototype."""
        logger.info(f"Starting virtual prototype {vp} in {proj}")
        self.send(CommandBuilder.start(vp, proj, args, gdb_arch))

    def stop_vp(self):
        """Ask the backend to stop the running virtual prototype."""
        logger.info("Stopping virtual prototype")
        self.send(CommandBuilder.stop())

    def step(self, steps: int = 1):
        """Advance the virtual prototype by the given number of steps."""
        self.send(CommandBuilder.step(steps))

    # ========================================================================
    # Event dispatch
    # ========================================================================

    def _on_event(self, event: InboundMessage):
        """Worker thread entry: hand the event over to the controller's thread."""
        self._event_arrived.emit(event)

    @safe_slot(category=ErrorCategory.PROTOCOL)
    def _dispatch(self, event: InboundMessage):
        """Fold one event into the viewer state and emit its signal."""
        self._state.apply(event)
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.warning(f"No handler for event {event.kind}")
            return
        handler(event)

    def _handle_frame(self, event: BinaryFrame):
        self.frame_received.emit(event.data)

        if not is_transaction_packet(len(event.data)):
            get_error_handler().warning(
                f"Malformed transaction frame ({len(event.data)} bytes) discarded",
                category=ErrorCategory.PROTOCOL,
            )
            return

        transactions = parse_transactions(event.data, self._state.modules)
        logger.debug(f"Decoded {len(transactions)} transactions")
        self.transactions_received.emit(transactions)

    def _handle_working_dirs(self, event: WorkingDirsConfig):
        self.working_dirs_received.emit(event.dirs, event.vps)

    def _handle_layout(self, event: MemoryLayout):
        logger.info(f"Memory layout received: {len(self._state.modules)} modules")
        self.layout_received.emit(event)

    def _handle_status(self, event: StatusUpdate):
        self.status_received.emit(event.vp, event.gdb)

    def _handle_start(self, event: StartNotice):
        self.start_received.emit(event.value)

    def _handle_options(self, event: OptionsNotice):
        self.options_received.emit(event.value)

    def _handle_socket_opened(self, event: SocketOpened):
        logger.info(f"Backend socket opened: {event.address}")
        self.socket_opened.emit(event.address)

    def _handle_socket_closed(self, event):
        logger.info("Backend socket closed")
        self.socket_closed.emit()

    def _handle_socket_error(self, event):
        get_error_handler().handle(ErrorInfo(
            message=f"Backend socket error ({self._config.address})",
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.NETWORK,
        ))
        self.socket_error.emit()
