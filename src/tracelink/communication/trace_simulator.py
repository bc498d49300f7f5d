"""
TraceLink Backend Simulator

Simulates the co-simulation backend for development and testing without a
real virtual prototype. It serves the same WebSocket endpoint and speaks
the same protocol:
- on connect: status, working dirs, layout (if running), gdb status, options
- Status: current prototype status
- Start: start the prototype, or stop it when the value is empty
- Step: generate transactions and send them as one binary frame
"""

import argparse
import asyncio
from dataclasses import dataclass, field
from typing import Optional
import json
import logging
import random

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .commands import Command
from .transaction import TransactionAction, create_packet_bytes, create_record_bytes
from .websocket_transport import DEFAULT_PATH


logger = logging.getLogger(__name__)


GDB_CONNECTED = "Connected"
GDB_NOT_CONNECTED = "NotConnected"


@dataclass
class SimulatedModule:
    """One module in the simulated memory layout."""
    name: str
    start_addr: int
    end_addr: int


@dataclass
class SimulatorState:
    """Simulated backend state."""

    # Project setup
    dirs: list[str] = field(default_factory=lambda: ["projects/demo"])
    vps: list[str] = field(default_factory=lambda: ["riscv-vp"])

    # Memory layout of the prototype
    modules: list[SimulatedModule] = field(default_factory=lambda: [
        SimulatedModule("mem0", 0x0000_0000, 0x0FFF_FFFF),
        SimulatedModule("uart0", 0x1000_0000, 0x1000_00FF),
        SimulatedModule("clint", 0x0200_0000, 0x0200_FFFF),
    ])

    # Prototype
    vp_running: bool = False
    cores: int = 1
    t_count: int = 0
    sim_time: int = 0

    # Debugger
    gdb_status: str = GDB_NOT_CONNECTED
    gdbproxy_port: int = 5000


class TraceSimulator:
    """
    Backend simulator serving the trace WebSocket endpoint.

    Usage:
        simulator = TraceSimulator()
        await simulator.start("127.0.0.1", 0)
        address = simulator.address      # "127.0.0.1:<port>"
        ...
        await simulator.stop()
    """

    def __init__(self, state: Optional[SimulatorState] = None, path: str = DEFAULT_PATH, seed: int = 0):
        self.state = state or SimulatorState()
        self._path = path
        self._server: Optional[Server] = None
        self._clients: set[ServerConnection] = set()
        self._random = random.Random(seed)
        self.received: list[dict] = []

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def address(self) -> str:
        """Address (host:port) clients should open."""
        if not self._server:
            raise RuntimeError("Simulator is not running")
        host, port = next(iter(self._server.sockets)).getsockname()[:2]
        return f"{host}:{port}"

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self, host: str = "127.0.0.1", port: int = 8080) -> None:
        """Start serving. Port 0 picks a free port."""
        self._server = await serve(self._handle_client, host, port, max_size=None)
        logger.info(f"Trace simulator listening on ws://{self.address}{self._path}")

    async def stop(self) -> None:
        """Stop the simulator and disconnect all clients."""
        if not self._server:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self._clients.clear()
        logger.info("Trace simulator stopped")

    async def set_gdb_status(self, connected: bool) -> None:
        """Change the debugger status and notify all clients."""
        self.state.gdb_status = GDB_CONNECTED if connected else GDB_NOT_CONNECTED
        await self._broadcast(self._command(Command.STATUS, self.state.gdb_status))

    # ========================================================================
    # Client handling
    # ========================================================================

    async def _handle_client(self, ws: ServerConnection) -> None:
        if ws.request.path != self._path:
            logger.warning(f"Rejecting client on unknown path {ws.request.path}")
            await ws.close(code=1008, reason="Unknown endpoint")
            return

        self._clients.add(ws)
        logger.info(f"Client connected: {ws.remote_address}")
        try:
            await self._send_state(ws)
            async for message in ws:
                await self._handle_message(ws, message)
        except ConnectionClosed as e:
            logger.info(f"Client connection closed: {e}")
        finally:
            self._clients.discard(ws)

    async def _send_state(self, ws: ServerConnection) -> None:
        """Send the initial state in the order a real backend does."""
        await ws.send(self._status_message())
        await ws.send(json.dumps({"dirs": self.state.dirs, "vps": self.state.vps}))
        if self.state.vp_running:
            await ws.send(self._layout_message())
        await ws.send(self._command(Command.STATUS, self.state.gdb_status))
        await ws.send(self._command(Command.OPTIONS, str(self.state.gdbproxy_port)))

    async def _handle_message(self, ws: ServerConnection, message) -> None:
        if not isinstance(message, str):
            return

        try:
            cmd = json.loads(message)
            command = Command(cmd["command"])
            value = str(cmd.get("value", ""))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Simulator could not parse command {message[:80]!r}: {e}")
            return

        self.received.append(cmd)

        if command == Command.STATUS:
            await ws.send(self._status_message())
        elif command == Command.START:
            await self._handle_start(ws, value)
        elif command == Command.STEP:
            await self._handle_step(ws, value)
        else:
            logger.debug(f"Simulator ignoring {command.value} command")

    async def _handle_start(self, ws: ServerConnection, value: str) -> None:
        if self.state.vp_running and not value:
            self.state.vp_running = False
            await ws.send(self._command(Command.START, ""))
            logger.info("Simulated prototype stopped")
            return

        try:
            request = json.loads(value)
        except ValueError:
            logger.warning("Simulator could not parse start request")
            return

        if self.state.vp_running:
            logger.info("Simulated prototype is running already")
            return

        if not isinstance(request, dict) or request.get("vp") not in self.state.vps:
            logger.warning(f"Unknown virtual prototype in start request {value!r}")
            return

        self.state.vp_running = True
        self.state.t_count = 0
        self.state.sim_time = 0
        await ws.send(self._layout_message())
        await ws.send(self._command(Command.START, "true"))
        logger.info(f"Simulated prototype {request['vp']} started")

    async def _handle_step(self, ws: ServerConnection, value: str) -> None:
        try:
            steps = int(value)
        except ValueError:
            logger.warning(f"Simulator got invalid step count {value!r}")
            return
        if steps < 1 or not self.state.vp_running:
            return

        await ws.send(self.generate_frame(steps))

    def generate_frame(self, count: int) -> bytes:
        """Generate `count` transactions as one binary frame."""
        records = []
        for _ in range(count):
            target = self._random.randrange(len(self.state.modules))
            module = self.state.modules[target]
            self.state.sim_time += self._random.randint(1, 20)
            records.append(create_record_bytes(
                sim_time=self.state.sim_time,
                action=self._random.choice(list(TransactionAction)),
                initiator_id=ord("0") + self._random.randrange(self.state.cores),
                target_id=target,
                address=self._random.randint(module.start_addr, module.end_addr) & ~0x3,
                data_length=4,
                data=self._random.getrandbits(32),
            ))

        frame = create_packet_bytes(self.state.t_count, records)
        self.state.t_count += count
        return frame

    # ========================================================================
    # Message builders
    # ========================================================================

    def _status_message(self) -> str:
        return self._command(Command.STATUS, "true" if self.state.vp_running else "false")

    def _layout_message(self) -> str:
        return json.dumps({
            "modules": [m.name for m in self.state.modules],
            "start_addrs": [f"{m.start_addr:x}" for m in self.state.modules],
            "end_addrs": [f"{m.end_addr:x}" for m in self.state.modules],
        })

    @staticmethod
    def _command(command: Command, value: str) -> str:
        return json.dumps({"command": command.value, "value": value})

    async def _broadcast(self, message: str) -> None:
        for ws in list(self._clients):
            try:
                await ws.send(message)
            except ConnectionClosed:
                self._clients.discard(ws)


def main():
    """Run the simulator standalone."""
    parser = argparse.ArgumentParser(description="TraceLink backend simulator")
    parser.add_argument("--host", default="127.0.0.1", help="Listen address")
    parser.add_argument("--port", type=int, default=8080, help="Listen port")
    parser.add_argument("--running", action="store_true", help="Start with the prototype running")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    async def run():
        simulator = TraceSimulator(SimulatorState(vp_running=args.running))
        await simulator.start(args.host, args.port)
        try:
            await asyncio.Future()
        finally:
            await simulator.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
