"""
TraceLink Connection Manager

Owns the single logical connection to the simulation backend:
- Connection lifecycle (open / reset / close)
- Lazy recovery: a send or an explicit reset re-opens the last address
- Routing of received frames through the MessageRouter
- Socket lifecycle events (opened / error / closed)

Every connection attempt uses a fresh transport from the factory. Events
from a transport that has been replaced are never reported.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Optional
import json
import logging
import time

from .message_router import MessageRouter
from .messages import InboundMessage, SocketClosed, SocketError, SocketOpened
from .transport_base import TransportBase, TransportError, TransportState, Payload
from .websocket_transport import WebSocketTransport


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Backend connection state."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    OPEN = auto()


@dataclass
class ConnectionStats:
    """Connection statistics."""
    connected_at: Optional[float] = None
    last_rx_time: Optional[float] = None
    frames_received: int = 0
    messages_sent: int = 0
    messages_dropped: int = 0
    errors: int = 0
    reconnects: int = 0

    @property
    def uptime(self) -> float:
        """Get connection uptime in seconds."""
        if self.connected_at:
            return time.time() - self.connected_at
        return 0.0


class ConnectionManager:
    """
    Manages the backend connection for the trace worker.

    All methods must be called from the event loop that owns the manager.
    There is no backoff and no retry limit: recovery happens only when the
    host sends a message or requests a reset.

    Example usage:
        manager = ConnectionManager(events.put_nowait)
        manager.open("localhost:8080")
        ...
        await manager.send({"command": "Status", "value": ""})
    """

    def __init__(
        self,
        publish: Callable[[InboundMessage], None],
        transport_factory: Callable[[], TransportBase] = WebSocketTransport,
    ):
        """
        Initialize connection manager.

        Args:
            publish: Callback receiving every inbound event
            transport_factory: Creates a fresh transport per connection attempt
        """
        self._publish = publish
        self._transport_factory = transport_factory
        self._router = MessageRouter(publish)

        self._state = ConnectionState.DISCONNECTED
        self._state_callbacks: list[Callable[[ConnectionState], None]] = []

        self._transport: Optional[TransportBase] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._closing_tasks: set[asyncio.Task] = set()
        self._pending_address: Optional[str] = None
        self._last_address: Optional[str] = None

        self._stats = ConnectionStats()

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def last_address(self) -> Optional[str]:
        """Address used for recovery, or None if never opened."""
        return self._last_address

    @property
    def stats(self) -> ConnectionStats:
        """Get connection statistics."""
        return self._stats

    @property
    def router(self) -> MessageRouter:
        return self._router

    def add_state_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Add callback for state changes."""
        self._state_callbacks.append(callback)

    def remove_state_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove state change callback."""
        if callback in self._state_callbacks:
            self._state_callbacks.remove(callback)

    def _set_state(self, new_state: ConnectionState) -> None:
        """Update state and notify callbacks."""
        if self._state != new_state:
            old_state = self._state
            self._state = new_state
            logger.info(f"Connection state: {old_state.name} -> {new_state.name}")
            for callback in self._state_callbacks:
                callback(new_state)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def open(self, address: str) -> Optional[asyncio.Task]:
        """
        Open the backend connection.

        Does nothing while a connection is open. Otherwise any pending
        attempt is abandoned and a new one is started.

        Args:
            address: Backend address as host[:port]

        Returns:
            The connect task, or None if already open
        """
        if self._state == ConnectionState.OPEN:
            logger.debug(f"Open {address} ignored, connection already open")
            return None

        if self._last_address is not None:
            self._stats.reconnects += 1

        self._discard_transport()
        self._last_address = address
        self._pending_address = address
        self._set_state(ConnectionState.CONNECTING)

        transport = self._transport_factory()
        transport.set_state_callback(
            lambda state, t=transport: self._on_transport_state(t, state)
        )
        transport.set_data_callback(
            lambda data, t=transport: self._on_transport_data(t, data)
        )
        self._transport = transport

        logger.info(f"Opening connection to {address}")
        self._connect_task = asyncio.create_task(self._connect(transport, address))
        return self._connect_task

    def reset_if_needed(self) -> Optional[asyncio.Task]:
        """
        Re-open the last address if the connection is not open.

        Returns:
            The connect task if a reconnection was started
        """
        if self._state == ConnectionState.OPEN:
            return None
        if self._last_address is None:
            logger.debug("Reset skipped, no address to reconnect to")
            return None
        logger.info(f"Reconnecting to {self._last_address}")
        return self.open(self._last_address)

    def reset(self) -> Optional[asyncio.Task]:
        """
        Handle an explicit reset request.

        A hung attempt is abandoned. Frames in flight on the old
        transport are lost.
        """
        if self._state == ConnectionState.OPEN:
            return None
        self._discard_transport()
        return self.reset_if_needed()

    async def send(self, payload: Any) -> bool:
        """
        Send a JSON message to the backend.

        A reconnection is attempted first if the connection is not open. The
        message itself is dropped unless the connection is open right now.

        Args:
            payload: JSON-serializable object

        Returns:
            True if the message was handed to the transport
        """
        self.reset_if_needed()

        if self._state != ConnectionState.OPEN or self._transport is None:
            logger.debug(f"Connection not open, message dropped: {payload!r}")
            self._stats.messages_dropped += 1
            return False

        text = json.dumps(payload)
        try:
            await self._transport.send(text)
        except TransportError as e:
            logger.warning(f"Send failed: {e}")
            self._stats.errors += 1
            return False

        self._stats.messages_sent += 1
        return True

    async def close(self) -> None:
        """Close the connection and wait for the transport to shut down."""
        transport = self._transport
        self._discard_transport()
        if self._closing_tasks:
            await asyncio.gather(*self._closing_tasks, return_exceptions=True)
        if transport is not None:
            self._publish(SocketClosed())
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Connection manager closed")

    # ========================================================================
    # Internals
    # ========================================================================

    async def _connect(self, transport: TransportBase, address: str) -> None:
        """Run one handshake; outcome is reported via transport state."""
        try:
            await transport.connect(address)
        except TransportError as e:
            logger.warning(f"Connection to {address} failed: {e}")

    def _discard_transport(self) -> None:
        """Detach the current transport and close it in the background."""
        transport = self._transport
        self._transport = None
        self._pending_address = None

        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
        self._connect_task = None

        if transport is None:
            return

        transport.set_state_callback(None)
        transport.set_data_callback(None)
        task = asyncio.create_task(transport.disconnect())
        self._closing_tasks.add(task)
        task.add_done_callback(self._closing_tasks.discard)

    def _on_transport_state(self, transport: TransportBase, state: TransportState) -> None:
        """Translate transport state changes into socket events."""
        if transport is not self._transport:
            return

        if state == TransportState.CONNECTED:
            address = self._pending_address
            self._last_address = address
            self._stats.connected_at = time.time()
            self._set_state(ConnectionState.OPEN)
            self._publish(SocketOpened(address=address))

        elif state == TransportState.ERROR:
            self._stats.errors += 1
            self._publish(SocketError())

        elif state == TransportState.DISCONNECTED:
            self._transport = None
            self._stats.connected_at = None
            self._set_state(ConnectionState.DISCONNECTED)
            self._publish(SocketClosed())

    def _on_transport_data(self, transport: TransportBase, data: Payload) -> None:
        """Route a received frame."""
        if transport is not self._transport:
            return
        self._stats.frames_received += 1
        self._stats.last_rx_time = time.time()
        self._router.route(data)
