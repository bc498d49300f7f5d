"""
TraceLink Message Router

Classifies every payload received from the backend into one inbound event:
- binary payloads become BinaryFrame (decoded on the host side)
- JSON objects are matched against the control message shapes in order,
  first match wins
- anything else is discarded without an error
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Union
import json
import logging

from .messages import (
    BinaryFrame,
    InboundMessage,
    MemoryLayout,
    OptionsNotice,
    StartNotice,
    StatusUpdate,
    WorkingDirsConfig,
)


logger = logging.getLogger(__name__)


# Backend command names carried in the "command" field
COMMAND_STATUS = "Status"
COMMAND_START = "Start"
COMMAND_OPTIONS = "Options"

# Status values
STATUS_VP_RUNNING = "true"
STATUS_VP_STOPPED = "false"
STATUS_GDB_CONNECTED = "Connected"
STATUS_GDB_DISCONNECTED = "NotConnected"


def _has(obj: dict, *keys: str) -> bool:
    """Check that every key is present with a non-null value."""
    return all(obj.get(key) is not None for key in keys)


def parse_status(value: Any) -> StatusUpdate:
    """
    Translate a Status command value into a status delta.

    "NotConnected" is checked before "Connected" because the latter is a
    substring of the former.
    """
    if not isinstance(value, str):
        return StatusUpdate()
    if value == STATUS_VP_RUNNING:
        return StatusUpdate(vp=1)
    if STATUS_GDB_DISCONNECTED in value:
        return StatusUpdate(gdb=-1)
    if STATUS_GDB_CONNECTED in value:
        return StatusUpdate(gdb=1)
    if value == STATUS_VP_STOPPED:
        return StatusUpdate(vp=-1)
    return StatusUpdate()


def _parse_working_dirs(obj: dict) -> Optional[InboundMessage]:
    if _has(obj, "dirs", "vps"):
        return WorkingDirsConfig(dirs=obj["dirs"], vps=obj["vps"])
    return None


def _parse_layout(obj: dict) -> Optional[InboundMessage]:
    if _has(obj, "modules", "start_addrs", "end_addrs"):
        return MemoryLayout(
            modules=obj["modules"],
            start_addrs=obj["start_addrs"],
            end_addrs=obj["end_addrs"],
        )
    return None


def _parse_status(obj: dict) -> Optional[InboundMessage]:
    if obj.get("command") == COMMAND_STATUS:
        return parse_status(obj.get("value"))
    return None


def _parse_start(obj: dict) -> Optional[InboundMessage]:
    if obj.get("command") == COMMAND_START:
        return StartNotice(value=obj.get("value"))
    return None


def _parse_options(obj: dict) -> Optional[InboundMessage]:
    if obj.get("command") == COMMAND_OPTIONS:
        return OptionsNotice(value=obj.get("value"))
    return None


# Evaluation order matters: a message carrying both dirs/vps and a command
# is a working-dirs message.
CONTROL_PARSERS: tuple[Callable[[dict], Optional[InboundMessage]], ...] = (
    _parse_working_dirs,
    _parse_layout,
    _parse_status,
    _parse_start,
    _parse_options,
)


def parse_control_message(obj: dict) -> Optional[InboundMessage]:
    """
    Classify a decoded JSON control object.

    Args:
        obj: Decoded JSON object

    Returns:
        The matching event, or None if the object is not recognized
    """
    for parser in CONTROL_PARSERS:
        message = parser(obj)
        if message is not None:
            return message
    return None


def classify_message(payload: Union[bytes, bytearray, memoryview, str]) -> Optional[InboundMessage]:
    """
    Classify one payload received from the backend.

    Args:
        payload: Binary frame or text frame

    Returns:
        The inbound event, or None if the payload is discarded
    """
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return BinaryFrame(data=bytes(payload))

    if not isinstance(payload, str) or not payload.startswith("{"):
        logger.debug(f"Discarding unrecognized payload of type {type(payload).__name__}")
        return None

    try:
        obj = json.loads(payload)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError is a ValueError; nesting past the recursion limit is not
        logger.debug(f"Discarding invalid JSON payload: {e}")
        return None

    if not isinstance(obj, dict):
        return None

    message = parse_control_message(obj)
    if message is None:
        logger.debug(f"Discarding unrecognized control message: {payload[:120]}")
    return message


@dataclass
class RouterStats:
    """Routing statistics."""
    binary_frames: int = 0
    control_messages: int = 0
    discarded: int = 0


class MessageRouter:
    """
    Routes classified backend payloads to a publish callback.

    Example usage:
        router = MessageRouter(events.put_nowait)
        router.route(b"...")          # publishes BinaryFrame
        router.route('{"command": "Status", "value": "true"}')
    """

    def __init__(self, publish: Callable[[InboundMessage], None]):
        self._publish = publish
        self._stats = RouterStats()

    @property
    def stats(self) -> RouterStats:
        """Get routing statistics."""
        return self._stats

    def route(self, payload: Union[bytes, str]) -> Optional[InboundMessage]:
        """
        Classify a payload and publish the resulting event.

        Returns:
            The published event, or None if the payload was discarded
        """
        message = classify_message(payload)
        if message is None:
            self._stats.discarded += 1
            return None

        if isinstance(message, BinaryFrame):
            self._stats.binary_frames += 1
        else:
            self._stats.control_messages += 1

        self._publish(message)
        return message
