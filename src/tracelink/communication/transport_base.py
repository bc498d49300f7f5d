"""
TraceLink Transport Base Interface

This module defines the abstract base class for all transport implementations.
A transport owns one connection attempt to the backend: it is created,
connected once, and discarded. Reconnecting means creating a new transport.
"""

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Optional, Callable, Union
import asyncio
import logging


logger = logging.getLogger(__name__)


Payload = Union[bytes, str]


class TransportError(Exception):
    """Base exception for transport errors."""
    pass


class ConnectionError(TransportError):
    """Connection-related errors."""
    pass


class TransportState(Enum):
    """Transport connection state."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    ERROR = auto()


class TransportBase(ABC):
    """
    Abstract base class for transport implementations.

    State changes and received payloads are reported through callbacks,
    which are always invoked on the event loop that runs the transport.
    """

    def __init__(self):
        self._state = TransportState.DISCONNECTED
        self._state_callback: Optional[Callable[[TransportState], None]] = None
        self._data_callback: Optional[Callable[[Payload], None]] = None

    @property
    def state(self) -> TransportState:
        """Get current transport state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    def set_state_callback(self, callback: Optional[Callable[[TransportState], None]]) -> None:
        """
        Set callback for state changes.

        Args:
            callback: Function to call when state changes, or None to clear
        """
        self._state_callback = callback

    def set_data_callback(self, callback: Optional[Callable[[Payload], None]]) -> None:
        """
        Set callback for received payloads.

        Args:
            callback: Function to call when a frame is received, or None to clear
        """
        self._data_callback = callback

    def _set_state(self, new_state: TransportState) -> None:
        """
        Update transport state and notify callback.

        Args:
            new_state: New transport state
        """
        if self._state != new_state:
            self._state = new_state
            if self._state_callback:
                self._state_callback(new_state)

    def _on_data_received(self, data: Payload) -> None:
        """
        Handle a received frame and notify callback.

        A failing callback is logged and the frame dropped; it never
        counts as a socket failure.

        Args:
            data: Binary or text frame
        """
        if not self._data_callback:
            return
        try:
            self._data_callback(data)
        except Exception as e:
            logger.exception(f"Data callback failed, frame dropped: {e}")

    def _fail(self) -> None:
        """Report a failed or broken connection: ERROR, then DISCONNECTED."""
        self._set_state(TransportState.ERROR)
        self._set_state(TransportState.DISCONNECTED)

    @abstractmethod
    async def connect(self, address: str) -> None:
        """
        Connect to the backend.

        Args:
            address: Backend address as host[:port]

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close the connection.

        This method should be safe to call even if not connected.
        """
        pass

    @abstractmethod
    async def send(self, data: Payload) -> None:
        """
        Send one frame to the backend.

        Args:
            data: Text frame (str) or binary frame (bytes)

        Raises:
            ConnectionError: If not connected
            TransportError: If send fails
        """
        pass


class MockTransport(TransportBase):
    """
    Mock transport for testing purposes.

    This transport can be used for unit testing and development
    without a running simulation backend.
    """

    def __init__(
        self,
        connect_delay: float = 0.0,
        fail_connect: bool = False,
        hang_connect: bool = False,
    ):
        """
        Args:
            connect_delay: Simulated handshake delay in seconds
            fail_connect: Make the handshake fail
            hang_connect: Make the handshake never complete
        """
        super().__init__()
        self._connect_delay = connect_delay
        self._fail_connect = fail_connect
        self._hang_connect = hang_connect
        self._tx_log: list[Payload] = []
        self._address: Optional[str] = None
        self.connect_calls = 0

    @property
    def address(self) -> Optional[str]:
        return self._address

    def inject_message(self, data: Payload) -> None:
        """
        Inject a received frame for testing.

        Args:
            data: Frame to deliver to the data callback
        """
        self._on_data_received(data)

    def simulate_close(self) -> None:
        """Simulate a clean close by the backend."""
        self._set_state(TransportState.DISCONNECTED)

    def simulate_error(self) -> None:
        """Simulate a socket error followed by close."""
        self._fail()

    def get_tx_log(self) -> list[Payload]:
        """Get log of all transmitted frames."""
        return self._tx_log.copy()

    def clear_tx_log(self) -> None:
        """Clear the transmission log."""
        self._tx_log.clear()

    async def connect(self, address: str) -> None:
        """Connect to mock backend."""
        self.connect_calls += 1
        self._set_state(TransportState.CONNECTING)
        if self._hang_connect:
            await asyncio.Event().wait()
        if self._connect_delay:
            await asyncio.sleep(self._connect_delay)
        if self._fail_connect:
            self._fail()
            raise ConnectionError(f"Mock connection to {address} refused")
        self._address = address
        self._set_state(TransportState.CONNECTED)

    async def disconnect(self) -> None:
        """Disconnect from mock backend."""
        self._address = None
        self._set_state(TransportState.DISCONNECTED)

    async def send(self, data: Payload) -> None:
        """Send frame (logs to tx_log)."""
        if not self.is_connected:
            raise ConnectionError("Not connected")
        self._tx_log.append(data)
