"""
TraceLink Backend Commands

Builders for the JSON command objects accepted by the simulation backend.
Every command has the shape {"command": <name>, "value": <string>}; the
result is passed unchanged to TraceWorker.send() / ConnectionManager.send().
"""

from enum import Enum
import json


class Command(str, Enum):
    """Command names understood by the backend."""
    START = "Start"
    STATUS = "Status"
    STEP = "Step"
    OPTIONS = "Options"


class CommandBuilder:
    """Helper class for building backend commands."""

    @staticmethod
    def build(command: Command, value: str = "") -> dict:
        """
        Build a generic command object.

        Args:
            command: Command name
            value: Command argument, always a string on the wire
        """
        return {"command": command.value, "value": value}

    @staticmethod
    def status() -> dict:
        """Build a status query; the backend answers with a Status message."""
        return CommandBuilder.build(Command.STATUS)

    @staticmethod
    def start(vp: str, proj: str, args: str = "", gdb_arch: str = "") -> dict:
        """
        Build a request to start a virtual prototype.

        Args:
            vp: Virtual prototype name (one of the advertised vps)
            proj: Project directory (one of the advertised dirs)
            args: Extra arguments for the prototype
            gdb_arch: Target architecture for the debugger, empty for none
        """
        request = {"vp": vp, "proj": proj, "args": args, "gdb_arch": gdb_arch}
        return CommandBuilder.build(Command.START, json.dumps(request))

    @staticmethod
    def stop() -> dict:
        """Build a request to stop the running prototype (Start without value)."""
        return CommandBuilder.build(Command.START)

    @staticmethod
    def step(steps: int = 1) -> dict:
        """
        Build a request to advance the prototype.

        Raises:
            ValueError: If steps is less than 1
        """
        if steps < 1:
            raise ValueError(f"Step count must be at least 1, got {steps}")
        return CommandBuilder.build(Command.STEP, str(steps))

    @staticmethod
    def options(value: str = "") -> dict:
        return CommandBuilder.build(Command.OPTIONS, value)
