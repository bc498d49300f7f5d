"""
TraceLink Transaction Frame Tests
Tests for frame validation and transaction decoding
"""

import struct
import pytest

from tracelink.communication.transaction import (
    Transaction,
    TransactionAction,
    is_transaction_packet,
    parse_transactions,
    create_record_bytes,
    create_packet_bytes,
    RECORD_FORMAT,
    RECORD_SIZE,
    PREAMBLE_SIZE,
)


def make_record(target_id=0, initiator_id=ord("A"), sim_time=100, action=2,
                address=0x10, data_length=8, data=0xFF):
    return create_record_bytes(
        sim_time=sim_time,
        action=action,
        initiator_id=initiator_id,
        target_id=target_id,
        address=address,
        data_length=data_length,
        data=data,
    )


class TestRecordFormat:
    """Test the binary record layout."""

    def test_sizes(self):
        """Record and preamble sizes match the wire format."""
        assert struct.calcsize(RECORD_FORMAT) == 28
        assert RECORD_SIZE == 28
        assert PREAMBLE_SIZE == 8

    def test_field_offsets(self):
        """Fields are packed little-endian with no padding."""
        record = make_record(sim_time=0x0102030405060708, action=1, initiator_id=0x30,
                             target_id=2, address=0xAABBCCDD, data_length=4, data=0x11223344)
        assert len(record) == 28
        assert record[0:8] == (0x0102030405060708).to_bytes(8, "little")
        assert record[8] == 1
        assert record[9] == 0x30
        assert record[10] == 2
        assert record[11:19] == (0xAABBCCDD).to_bytes(8, "little")
        assert record[19] == 4
        assert record[20:28] == (0x11223344).to_bytes(8, "little")

    def test_action_values(self):
        """Backend opcodes."""
        assert TransactionAction.READ == 0
        assert TransactionAction.WRITE == 1


class TestFrameValidation:
    """Test is_transaction_packet."""

    @pytest.mark.parametrize("length", [8, 36, 64, 8 + 28 * 100])
    def test_valid_lengths(self, length):
        assert is_transaction_packet(length)

    @pytest.mark.parametrize("length", [0, 7, 9, 28, 35, 37, 56])
    def test_invalid_lengths(self, length):
        assert not is_transaction_packet(length)

    def test_matches_modulo_rule(self):
        """Validity is exactly L mod 28 == 8."""
        for length in range(0, 300):
            assert is_transaction_packet(length) == (length % 28 == 8)


class TestParseTransactions:
    """Test parse_transactions."""

    def test_single_record(self):
        """Seed 5 with one record decodes to trans_cnt 6."""
        frame = create_packet_bytes(5, [make_record()])

        result = parse_transactions(frame, ["mem0"])

        assert result == [Transaction(
            sim_time=100,
            action=2,
            initiator="Core-A",
            target="mem0",
            address=16,
            data_length=8,
            data=255,
            trans_cnt=6,
        )]

    def test_unknown_target_dropped(self):
        """Same frame with no modules decodes to nothing."""
        frame = create_packet_bytes(5, [make_record()])
        assert parse_transactions(frame, []) == []

    def test_preamble_only(self):
        """A bare preamble is valid and holds no records."""
        assert parse_transactions(create_packet_bytes(42), ["mem0"]) == []

    def test_counter_sequence(self):
        """Counters run seed+1 .. seed+N in input order."""
        records = [make_record(sim_time=t) for t in range(10)]
        frame = create_packet_bytes(1000, records)

        result = parse_transactions(frame, ["mem0"])

        assert [t.trans_cnt for t in result] == list(range(1001, 1011))
        assert [t.sim_time for t in result] == list(range(10))

    def test_dropped_record_keeps_counters(self):
        """A dropped record still consumes its counter value."""
        records = [
            make_record(target_id=0, sim_time=1),
            make_record(target_id=7, sim_time=2),
            make_record(target_id=1, sim_time=3),
        ]
        frame = create_packet_bytes(0, records)

        result = parse_transactions(frame, ["mem0", "uart0"])

        assert [(t.sim_time, t.trans_cnt, t.target) for t in result] == [
            (1, 1, "mem0"),
            (3, 3, "uart0"),
        ]

    def test_malformed_frame(self, caplog):
        """Malformed lengths decode to nothing and log a warning."""
        frame = create_packet_bytes(0, [make_record()]) + b"\x00"

        assert parse_transactions(frame, ["mem0"]) == []
        assert "malformed" in caplog.text.lower()

    def test_unknown_target_logged(self, caplog):
        """Dropped records are reported."""
        parse_transactions(create_packet_bytes(0, [make_record(target_id=3)]), ["mem0"])
        assert "Unknown target module index 3" in caplog.text

    def test_initiator_rendering(self):
        """Initiator id becomes Core-<chr(id)>."""
        frame = create_packet_bytes(0, [make_record(initiator_id=ord("0"))])
        assert parse_transactions(frame, ["mem0"])[0].initiator == "Core-0"

    def test_data_length_not_validated(self):
        """data_length is carried through even if it disagrees with data."""
        frame = create_packet_bytes(0, [make_record(data_length=200, data=1)])
        transaction = parse_transactions(frame, ["mem0"])[0]
        assert transaction.data_length == 200
        assert transaction.data == 1

    def test_max_values(self):
        """Full 64-bit fields survive decoding."""
        max64 = 2 ** 64 - 1
        frame = create_packet_bytes(0, [make_record(sim_time=max64, address=max64, data=max64)])
        transaction = parse_transactions(frame, ["mem0"])[0]
        assert transaction.sim_time == max64
        assert transaction.address == max64
        assert transaction.data == max64

    def test_accepts_bytearray(self):
        frame = bytearray(create_packet_bytes(0, [make_record()]))
        assert len(parse_transactions(frame, ["mem0"])) == 1


class TestTransaction:
    """Test Transaction helpers."""

    def test_action_name(self):
        frame = create_packet_bytes(0, [make_record(action=1), make_record(action=9)])
        write, unknown = parse_transactions(frame, ["mem0"])
        assert write.action_name == "WRITE"
        assert unknown.action_name == "9"

    def test_str(self):
        transaction = parse_transactions(create_packet_bytes(5, [make_record()]), ["mem0"])[0]
        text = str(transaction)
        assert "#6" in text
        assert "Core-A -> mem0" in text
        assert "0x10" in text

    def test_frozen(self):
        transaction = parse_transactions(create_packet_bytes(0, [make_record()]), ["mem0"])[0]
        with pytest.raises(AttributeError):
            transaction.trans_cnt = 99
