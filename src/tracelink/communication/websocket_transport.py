"""
TraceLink WebSocket Transport Implementation

This module implements the WebSocket transport used to reach the simulation
backend. The backend serves its socket on a fixed sub-path of host[:port],
so "localhost:8080" is reached at ws://localhost:8080/ws.

Text frames carry JSON control messages; binary frames carry transaction
frames. Both are delivered unchanged to the data callback.
"""

import asyncio
from typing import Optional
import logging

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedError

from .transport_base import (
    TransportBase,
    TransportState,
    TransportError,
    ConnectionError,
    Payload,
)


logger = logging.getLogger(__name__)


# Default backend settings
DEFAULT_ADDRESS = "127.0.0.1:8080"
DEFAULT_PATH = "/ws"


def build_url(address: str, path: str = DEFAULT_PATH) -> str:
    """
    Build the WebSocket URL for a backend address.

    Args:
        address: Backend address as host[:port]
        path: Endpoint path on the backend

    Returns:
        ws:// URL
    """
    if not path.startswith("/"):
        path = "/" + path
    return f"ws://{address}{path}"


class WebSocketTransport(TransportBase):
    """
    WebSocket transport for connecting to the simulation backend.

    There is no handshake timeout: an attempt that never completes stays
    CONNECTING until the owner disconnects it.

    Usage:
        transport = WebSocketTransport()
        await transport.connect("localhost:8080")
        await transport.send('{"command": "Status", "value": ""}')
    """

    def __init__(self, path: str = DEFAULT_PATH):
        super().__init__()
        self._path = path
        self._ws: Optional[ClientConnection] = None
        self._read_task: Optional[asyncio.Task] = None
        self._url: str = ""

    @property
    def url(self) -> str:
        return self._url

    async def connect(self, address: str) -> None:
        """
        Connect to the backend.

        Args:
            address: Address in format "host:port" or just "host"

        Raises:
            ConnectionError: If the handshake fails
        """
        if self.is_connected:
            await self.disconnect()

        self._url = build_url(address, self._path)
        self._set_state(TransportState.CONNECTING)

        try:
            self._ws = await connect(self._url, open_timeout=None, max_size=None)
        except Exception as e:
            logger.warning(f"Failed to connect to {self._url}: {e}")
            self._fail()
            raise ConnectionError(f"Failed to connect to {self._url}: {e}") from e

        self._read_task = asyncio.create_task(self._read_loop())
        self._set_state(TransportState.CONNECTED)
        logger.info(f"Connected to backend at {self._url}")

    async def disconnect(self) -> None:
        """Disconnect from the backend."""
        if self._read_task:
            if self._read_task is not asyncio.current_task():
                self._read_task.cancel()
                try:
                    await self._read_task
                except asyncio.CancelledError:
                    pass
            self._read_task = None

        if self._ws:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(f"Error closing connection: {e}")
            self._ws = None
            logger.info(f"Disconnected from {self._url}")

        self._set_state(TransportState.DISCONNECTED)

    async def send(self, data: Payload) -> None:
        """
        Send one frame to the backend.

        Args:
            data: str is sent as a text frame, bytes as a binary frame

        Raises:
            ConnectionError: If not connected
            TransportError: If send fails
        """
        if not self.is_connected or not self._ws:
            raise ConnectionError("Not connected to backend")

        try:
            await self._ws.send(data)
            logger.debug(f"Sent {len(data)} {'chars' if isinstance(data, str) else 'bytes'} to backend")
        except Exception as e:
            self._fail()
            raise TransportError(f"Send failed: {e}") from e

    async def _read_loop(self) -> None:
        """Background task delivering received frames."""
        try:
            async for message in self._ws:
                self._on_data_received(message)
        except ConnectionClosedError as e:
            logger.warning(f"Connection to {self._url} lost: {e}")
            self._fail()
            return
        except Exception as e:
            logger.error(f"Read error: {e}")
            self._fail()
            return

        logger.info(f"Backend closed the connection: {self._url}")
        self._set_state(TransportState.DISCONNECTED)
