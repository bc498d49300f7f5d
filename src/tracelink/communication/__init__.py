"""
TraceLink Communication Package

This package connects the viewer to the co-simulation backend and decodes
what the backend sends.

Modules:
    transaction: Binary transaction frame validation and decoding
    messages: Worker commands and inbound event types
    message_router: Classification of backend payloads
    transport_base: Abstract transport interface
    websocket_transport: WebSocket transport implementation
    connection_manager: Single backend connection with lazy recovery
    trace_worker: Background thread running the connection
    commands: Backend command builders
    trace_simulator: Simulated backend for development and tests

Example usage:
    from tracelink.communication import TraceWorker, CommandBuilder

    worker = TraceWorker()
    worker.start()
    worker.open("localhost:8080")
    worker.send(CommandBuilder.status())

    for event in worker.poll_events():
        print(event.kind)
"""

from .transaction import (
    Transaction,
    TransactionAction,
    is_transaction_packet,
    parse_transactions,
)
from .messages import (
    MessageKind,
    BinaryFrame,
    WorkingDirsConfig,
    MemoryLayout,
    StatusUpdate,
    StartNotice,
    OptionsNotice,
    SocketOpened,
    SocketClosed,
    SocketError,
    OpenCommand,
    SendCommand,
    ResetCommand,
)
from .message_router import MessageRouter, classify_message
from .transport_base import TransportBase, TransportError, TransportState, MockTransport
from .websocket_transport import WebSocketTransport
from .connection_manager import ConnectionManager, ConnectionState
from .trace_worker import TraceWorker
from .commands import Command, CommandBuilder
from .trace_simulator import TraceSimulator, SimulatorState

__all__ = [
    # Frames
    "Transaction",
    "TransactionAction",
    "is_transaction_packet",
    "parse_transactions",
    # Messages
    "MessageKind",
    "BinaryFrame",
    "WorkingDirsConfig",
    "MemoryLayout",
    "StatusUpdate",
    "StartNotice",
    "OptionsNotice",
    "SocketOpened",
    "SocketClosed",
    "SocketError",
    "OpenCommand",
    "SendCommand",
    "ResetCommand",
    # Routing
    "MessageRouter",
    "classify_message",
    # Transport
    "TransportBase",
    "TransportError",
    "TransportState",
    "MockTransport",
    "WebSocketTransport",
    # Manager
    "ConnectionManager",
    "ConnectionState",
    "TraceWorker",
    # Commands
    "Command",
    "CommandBuilder",
    # Simulator
    "TraceSimulator",
    "SimulatorState",
]
