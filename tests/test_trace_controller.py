"""
TraceLink Trace Controller Tests
Tests for the Qt signal bridge
"""

import json
import threading

import pytest

from tracelink.communication.messages import (
    BinaryFrame,
    MemoryLayout,
    OptionsNotice,
    SocketClosed,
    SocketError,
    SocketOpened,
    StartNotice,
    StatusUpdate,
    WorkingDirsConfig,
)
from tracelink.communication.transaction import create_packet_bytes, create_record_bytes
from tracelink.communication.transport_base import MockTransport
from tracelink.config import TraceConfig
from tracelink.controllers.trace_controller import TraceController
from tracelink.utils.error_handler import ErrorCategory


def record(target_id=0):
    return create_record_bytes(
        sim_time=100, action=1, initiator_id=ord("0"), target_id=target_id,
        address=0x10, data_length=4, data=0xAB,
    )


class SignalRecorder:
    """Collects emitted signal arguments."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)


@pytest.fixture
def transports():
    return []


@pytest.fixture
def controller(qapp, error_handler, transports):
    def factory():
        transport = MockTransport()
        transports.append(transport)
        return transport

    controller = TraceController(TraceConfig(address="localhost:9000"), transport_factory=factory)
    yield controller
    controller.shutdown()


class TestDispatch:
    """Events are turned into signals (dispatch called directly)."""

    def test_status(self, controller):
        status = SignalRecorder()
        controller.status_received.connect(status)

        controller._on_event(StatusUpdate(vp=0, gdb=-1))

        assert status.calls == [(0, -1)]

    def test_working_dirs(self, controller):
        dirs = SignalRecorder()
        controller.working_dirs_received.connect(dirs)

        controller._on_event(WorkingDirsConfig(dirs=["p"], vps=["vp"]))

        assert dirs.calls == [(["p"], ["vp"])]
        assert controller.viewer_state.working_vps == ["vp"]

    def test_start_and_options(self, controller):
        start, options = SignalRecorder(), SignalRecorder()
        controller.start_received.connect(start)
        controller.options_received.connect(options)

        controller._on_event(StartNotice(value="true"))
        controller._on_event(OptionsNotice(value="5000"))

        assert start.calls == [("true",)]
        assert options.calls == [("5000",)]

    def test_socket_events(self, controller, error_handler):
        opened, closed, errored = SignalRecorder(), SignalRecorder(), SignalRecorder()
        controller.socket_opened.connect(opened)
        controller.socket_closed.connect(closed)
        controller.socket_error.connect(errored)

        controller._on_event(SocketOpened(address="localhost:9000"))
        assert controller.is_connected()

        controller._on_event(SocketError())
        controller._on_event(SocketClosed())

        assert opened.calls == [("localhost:9000",)]
        assert errored.calls == [()]
        assert closed.calls == [()]
        assert not controller.is_connected()
        assert error_handler.get_history(category=ErrorCategory.NETWORK)

    def test_frame_decoded_with_layout(self, controller):
        frames, decoded, layouts = SignalRecorder(), SignalRecorder(), SignalRecorder()
        controller.frame_received.connect(frames)
        controller.transactions_received.connect(decoded)
        controller.layout_received.connect(layouts)

        layout = MemoryLayout(modules=["mem0", "uart0"], start_addrs=["0", "100"], end_addrs=["ff", "1ff"])
        controller._on_event(layout)
        frame = create_packet_bytes(10, [record(1), record(5), record(0)])
        controller._on_event(BinaryFrame(data=frame))

        assert layouts.calls == [(layout,)]
        assert frames.calls == [(frame,)]
        transactions = decoded.calls[0][0]
        assert [(t.target, t.trans_cnt) for t in transactions] == [("uart0", 11), ("mem0", 13)]
        assert transactions[0].initiator == "Core-0"

    def test_frame_without_layout(self, controller):
        decoded = SignalRecorder()
        controller.transactions_received.connect(decoded)

        controller._on_event(BinaryFrame(data=create_packet_bytes(0, [record(0)])))

        assert decoded.calls == [([],)]

    def test_malformed_frame(self, controller, error_handler):
        frames, decoded, warnings = SignalRecorder(), SignalRecorder(), SignalRecorder()
        controller.frame_received.connect(frames)
        controller.transactions_received.connect(decoded)
        error_handler.warning_occurred.connect(warnings)

        controller._on_event(BinaryFrame(data=b"\x00" * 10))

        assert frames.calls == [(b"\x00" * 10,)]
        assert decoded.calls == []
        assert len(warnings.calls) == 1
        assert error_handler.get_history(category=ErrorCategory.PROTOCOL)

    def test_dispatch_error_reported(self, controller, error_handler, monkeypatch):
        """An exception while dispatching is reported, not raised."""
        def broken(event):
            raise RuntimeError("handler failed")

        monkeypatch.setitem(controller._handlers, StatusUpdate(vp=1).kind, broken)

        assert controller._on_event(StatusUpdate(vp=1)) is None

        history = error_handler.get_history(category=ErrorCategory.PROTOCOL)
        assert "handler failed" in history[-1].message
        assert controller.viewer_state.has_vp


class TestWorkerIntegration:
    """Controller driving a real worker thread with mock transports."""

    def test_open_and_send(self, qapp, controller, transports, wait_until):
        opened = SignalRecorder()
        controller.socket_opened.connect(opened)

        controller.start()
        controller.open()

        assert wait_until(lambda: opened.calls, app=qapp)
        assert opened.calls == [("localhost:9000",)]

        controller.step(3)
        assert wait_until(lambda: transports[0].get_tx_log())
        assert json.loads(transports[0].get_tx_log()[0]) == {"command": "Step", "value": "3"}

    def test_signals_delivered_to_qt_thread(self, qapp, controller, wait_until):
        threads = []
        controller.socket_opened.connect(lambda address: threads.append(threading.current_thread()))

        controller.start()
        controller.open("localhost:9001")

        assert wait_until(lambda: threads, app=qapp)
        assert threads[0] is threading.main_thread()
        assert controller.config.address == "localhost:9001"

    def test_host_commands(self, qapp, controller, transports, wait_until):
        opened = SignalRecorder()
        controller.socket_opened.connect(opened)
        controller.start()
        controller.open()
        assert wait_until(lambda: opened.calls, app=qapp)

        controller.request_status()
        controller.start_vp("riscv-vp", "projects/demo")
        controller.stop_vp()

        assert wait_until(lambda: len(transports[0].get_tx_log()) == 3)
        sent = [json.loads(m) for m in transports[0].get_tx_log()]
        assert [m["command"] for m in sent] == ["Status", "Start", "Start"]
        assert json.loads(sent[1]["value"])["vp"] == "riscv-vp"
        assert sent[2]["value"] == ""

    def test_state_applied_on_qt_thread(self, qapp, controller, monkeypatch, wait_until):
        """Worker events mutate the viewer state only on the controller's thread."""
        threads = []
        apply = controller.viewer_state.apply

        def recording_apply(event):
            threads.append(threading.current_thread())
            apply(event)

        monkeypatch.setattr(controller.viewer_state, "apply", recording_apply)
        opened = SignalRecorder()
        controller.socket_opened.connect(opened)

        controller.start()
        controller.open()

        assert wait_until(lambda: opened.calls, app=qapp)
        assert threads == [threading.main_thread()]
        assert controller.is_connected()
