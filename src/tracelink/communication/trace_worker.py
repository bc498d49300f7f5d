"""
TraceLink Trace Worker

Runs the connection manager on a dedicated thread with its own asyncio
event loop, so the host thread never blocks on the network.

The host talks to the worker only by message passing:
- commands go in through submit() / open() / send() / reset()
- events come out through an event handler callable (invoked on the
  worker thread), or through the thread-safe `events` queue
"""

import asyncio
import logging
import queue
import threading
from typing import Any, Callable, Optional

from .connection_manager import ConnectionManager
from .messages import (
    InboundMessage,
    OpenCommand,
    ResetCommand,
    SendCommand,
    WorkerCommand,
)
from .transport_base import TransportBase
from .websocket_transport import WebSocketTransport


logger = logging.getLogger(__name__)


_STOP = object()


class TraceWorker:
    """
    Background worker owning the backend connection.

    Usage:
        worker = TraceWorker()
        worker.start()
        worker.open("localhost:8080")
        worker.send({"command": "Status", "value": ""})
        for event in worker.poll_events():
            ...
        worker.stop()
    """

    def __init__(
        self,
        event_handler: Optional[Callable[[InboundMessage], None]] = None,
        transport_factory: Callable[[], TransportBase] = WebSocketTransport,
        event_queue_size: int = 0,
    ):
        """
        Args:
            event_handler: Called on the worker thread for every event.
                If None, events are queued on `events` instead.
            transport_factory: Creates a fresh transport per connection attempt
            event_queue_size: Max queued events (0 = unbounded)
        """
        self._event_handler = event_handler
        self._transport_factory = transport_factory
        self.events: queue.Queue = queue.Queue(maxsize=event_queue_size)

        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._commands: Optional[asyncio.Queue] = None
        self._manager: Optional[ConnectionManager] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def manager(self) -> Optional[ConnectionManager]:
        """Connection manager (only touch it from the worker thread)."""
        return self._manager

    def start(self, timeout: float = 5.0) -> None:
        """Start the worker thread and wait until it accepts commands."""
        if self.is_running:
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name="TraceWorker", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout) or self._loop is None:
            self._thread = None
            raise RuntimeError("Trace worker failed to start")
        logger.info("Trace worker started")

    def stop(self, timeout: float = 2.0) -> None:
        """Close the connection and stop the worker thread."""
        if not self.is_running:
            self._thread = None
            return
        self._post(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Trace worker did not stop in time")
        self._thread = None
        logger.info("Trace worker stopped")

    def submit(self, command: WorkerCommand) -> None:
        """
        Queue a command for the worker. Never blocks.

        Raises:
            RuntimeError: If the worker is not running
        """
        self._post(command)

    def open(self, address: str) -> None:
        self.submit(OpenCommand(address))

    def send(self, payload: Any) -> None:
        self.submit(SendCommand(payload))

    def reset(self) -> None:
        self.submit(ResetCommand())

    def poll_events(self) -> list[InboundMessage]:
        """Drain all queued events without blocking."""
        events = []
        while True:
            try:
                events.append(self.events.get_nowait())
            except queue.Empty:
                return events

    def _post(self, item: object) -> None:
        loop = self._loop
        if loop is None or self._commands is None:
            raise RuntimeError("Trace worker is not running")
        loop.call_soon_threadsafe(self._commands.put_nowait, item)

    def _run(self) -> None:
        """Thread entry point."""
        try:
            asyncio.run(self._main())
        except Exception as e:
            logger.exception(f"Trace worker crashed: {e}")
        finally:
            self._loop = None
            self._commands = None
            self._ready.set()

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._commands = asyncio.Queue()
        self._manager = ConnectionManager(self._emit, self._transport_factory)
        self._ready.set()

        try:
            while True:
                command = await self._commands.get()
                if command is _STOP:
                    break
                await self.handle_command(command)
        finally:
            await self._manager.close()

    async def handle_command(self, command: WorkerCommand) -> None:
        """
        Execute one host command on the worker loop.

        A failing command is logged and does not stop the worker.
        """
        try:
            if isinstance(command, OpenCommand):
                self._manager.open(command.address)
            elif isinstance(command, SendCommand):
                await self._manager.send(command.payload)
            elif isinstance(command, ResetCommand):
                self._manager.reset()
            else:
                logger.warning(f"Unknown worker command: {command!r}")
        except Exception as e:
            logger.exception(f"Command {type(command).__name__} failed: {e}")

    def _emit(self, event: InboundMessage) -> None:
        """Deliver one event to the host."""
        if self._event_handler is not None:
            try:
                self._event_handler(event)
            except Exception as e:
                logger.error(f"Event handler failed for {event.kind.name}: {e}")
            return

        try:
            self.events.put_nowait(event)
        except queue.Full:
            logger.warning(f"Event queue full, dropping {event.kind.name} event")
