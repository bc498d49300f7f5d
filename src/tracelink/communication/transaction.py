"""
TraceLink Transaction Frame Decoding

This module defines the binary transaction frame format emitted by the
simulation backend and the decoder that turns it into Transaction records.

Frame Structure (8 + N * 28 bytes):
- t_count: 8 bytes (uint64) - transaction count before the first record
- records: N x 28 bytes

Record Structure (28 bytes, little-endian, packed):
- sim_time: 8 bytes (uint64) - simulation time of the transaction
- action: 1 byte (uint8) - bus opcode (0 = read, 1 = write)
- initiator: 1 byte (uint8) - core identifier, rendered as "Core-<chr(id)>"
- target: 1 byte (uint8) - index into the memory layout module table
- address: 8 bytes (uint64) - bus address
- data_length: 1 byte (uint8) - number of valid bytes in data
- data: 8 bytes (uint64) - payload value
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence
import logging
import struct


logger = logging.getLogger(__name__)


class TransactionAction(IntEnum):
    """Bus opcodes emitted by the backend."""
    READ = 0
    WRITE = 1


@dataclass(frozen=True)
class Transaction:
    """One bus transaction observed in the co-simulation."""

    sim_time: int
    action: int
    initiator: str
    target: str
    address: int
    data_length: int
    data: int
    trans_cnt: int

    @property
    def action_name(self) -> str:
        """Get opcode name, or the raw number for unknown opcodes."""
        try:
            return TransactionAction(self.action).name
        except ValueError:
            return str(self.action)

    def __str__(self) -> str:
        return (
            f"#{self.trans_cnt} t={self.sim_time} {self.initiator} -> {self.target} "
            f"{self.action_name} 0x{self.address:X} [{self.data_length}] 0x{self.data:X}"
        )


# Record format string for struct.unpack
# Total size: 28 bytes (packed, no alignment)
RECORD_FORMAT = "<" + "".join([
    "Q",      # sim_time (8 bytes)
    "B",      # action (1 byte)
    "B",      # initiator id (1 byte)
    "B",      # target module index (1 byte)
    "Q",      # address (8 bytes)
    "B",      # data_length (1 byte)
    "Q",      # data (8 bytes)
])

PREAMBLE_FORMAT = "<Q"

PREAMBLE_SIZE = 8
RECORD_SIZE = 28

INITIATOR_PREFIX = "Core-"


def is_transaction_packet(length: int) -> bool:
    """
    Check whether a frame length fits the transaction frame format.

    A valid frame is the 8-byte preamble followed by a whole number of
    28-byte records. A preamble-only frame (8 bytes) is valid.

    Args:
        length: Frame length in bytes

    Returns:
        True if the length is well-formed
    """
    return length % RECORD_SIZE == PREAMBLE_SIZE


def parse_transactions(data: bytes, module_names: Sequence[str]) -> list[Transaction]:
    """
    Parse a binary transaction frame.

    The transaction counter starts at the preamble value and is incremented
    before each record, so the first record gets t_count + 1. Records whose
    target index is outside module_names are dropped, but still consume a
    counter value.

    Args:
        data: Raw frame bytes
        module_names: Module names from the current memory layout, by index

    Returns:
        Decoded transactions in frame order (empty list for malformed frames)
    """
    if not is_transaction_packet(len(data)):
        logger.warning(
            f"Dropping malformed transaction frame: {len(data)} bytes "
            f"(expected {PREAMBLE_SIZE} + N * {RECORD_SIZE})"
        )
        return []

    (t_count,) = struct.unpack_from(PREAMBLE_FORMAT, data, 0)

    transactions = []
    for offset in range(PREAMBLE_SIZE, len(data), RECORD_SIZE):
        t_count += 1
        transaction = _parse_record(data, offset, module_names, t_count)
        if transaction is not None:
            transactions.append(transaction)

    return transactions


def _parse_record(
    data: bytes,
    offset: int,
    module_names: Sequence[str],
    trans_cnt: int,
) -> Optional[Transaction]:
    """Decode one record, or None if its target is unknown."""
    sim_time, action, initiator_id, target_id, address, data_length, value = \
        struct.unpack_from(RECORD_FORMAT, data, offset)

    if target_id >= len(module_names):
        logger.warning(
            f"Unknown target module index {target_id} in transaction #{trans_cnt} "
            f"({len(module_names)} modules known), record dropped"
        )
        return None

    return Transaction(
        sim_time=sim_time,
        action=action,
        initiator=INITIATOR_PREFIX + chr(initiator_id),
        target=module_names[target_id],
        address=address,
        data_length=data_length,
        data=value,
        trans_cnt=trans_cnt,
    )


def create_record_bytes(
    sim_time: int,
    action: int,
    initiator_id: int,
    target_id: int,
    address: int,
    data_length: int,
    data: int,
) -> bytes:
    """
    Create raw bytes for one transaction record.

    Used for testing and simulation.

    Returns:
        28-byte record
    """
    return struct.pack(
        RECORD_FORMAT,
        sim_time,
        int(action),
        initiator_id,
        target_id,
        address,
        data_length,
        data,
    )


def create_packet_bytes(t_count: int, records: Sequence[bytes] = ()) -> bytes:
    """
    Create a complete transaction frame.

    Args:
        t_count: Transaction count written into the preamble
        records: Encoded records (see create_record_bytes)

    Returns:
        Raw frame bytes
    """
    return struct.pack(PREAMBLE_FORMAT, t_count) + b"".join(records)
