"""Tests for the ADC64 control handle over a scripted connection."""

import socket
import threading
from collections import deque

import pytest

from adc_control.device.adc64 import DEFAULT_REGISTERS, Adc64Device
from adc_control.device.base import CTRL_MSTREAM_ENABLE, REG_CTRL, DeviceControl
from adc_control.device.memory import InMemoryDevice
from adc_control.errors import DeviceCommunicationError
from adc_control.protocol.mlink import (
    DEVICE_ADDRESS,
    HOST_ADDRESS,
    FrameType,
    build_mlink_frame,
    parse_mlink_frame,
)
from adc_control.protocol.register import RegisterOperation
from adc_control.transport.udp_connection import Endpoint, UDPConnection


class FakeBoard:
    """Connection double that answers register requests like a board.

    Register contents come back as write-form words, as a board reports them.
    """

    def __init__(self, registers=None):
        self.registers = dict(registers or {})
        self.requests = []
        self.replies = deque()
        self.opened = 0
        self.closed = 0
        self.reply_override = None
        self.raise_on_send = None

    def open(self):
        self.opened += 1

    def close(self):
        self.closed += 1

    def write(self, data):
        if self.raise_on_send is not None:
            raise self.raise_on_send
        request = parse_mlink_frame(data)
        self.requests.append(request)
        if self.reply_override is not None:
            self.replies.append(self.reply_override(request))
            return len(data)
        reply = []
        for op in request.ops:
            if op.is_read:
                reply.append(RegisterOperation.write(op.addr, self.registers.get(op.addr, 0)))
            else:
                self.registers[op.addr] = op.value
                reply.append(op)
        self.replies.append(
            build_mlink_frame(
                FrameType.REG_RESPONSE, request.seq, reply, src=DEVICE_ADDRESS, dst=HOST_ADDRESS
            )
        )
        return len(data)

    def read(self):
        if not self.replies:
            raise TimeoutError("no response")
        return self.replies.popleft()


def test_handles_satisfy_interface():
    assert isinstance(InMemoryDevice("a"), DeviceControl)
    assert isinstance(Adc64Device("b", FakeBoard()), DeviceControl)


def test_read_register():
    board = FakeBoard({0x40: 0x1234})
    device = Adc64Device("adc0", board)
    assert device.read_register(0x40) == 0x1234
    assert board.opened == 1
    assert board.requests[0].ops == [RegisterOperation.read(0x40)]


def test_read_all_uses_one_frame_in_order():
    board = FakeBoard({0x41: 7, 0x40: 3})
    device = Adc64Device("adc0", board, registers=[0x41, 0x40])
    regs = device.read_all_registers()
    assert [(op.addr, op.value) for op in regs] == [(0x41, 7), (0x40, 3)]
    assert len(board.requests) == 1


def test_default_register_list():
    device = Adc64Device("adc0", FakeBoard())
    assert device.registers == DEFAULT_REGISTERS
    assert len(device.read_all_registers()) == len(DEFAULT_REGISTERS)


def test_write_register():
    board = FakeBoard()
    device = Adc64Device("adc0", board)
    device.write_register(RegisterOperation.write(0x42, 0xFF))
    assert board.registers[0x42] == 0xFF


def test_write_register_rejects_read():
    with pytest.raises(ValueError):
        Adc64Device("adc0", FakeBoard()).write_register(RegisterOperation.read(1))


def test_streaming_writes_control_register():
    board = FakeBoard()
    device = Adc64Device("adc0", board)
    device.start_streaming()
    assert board.registers[REG_CTRL] == CTRL_MSTREAM_ENABLE
    device.stop_streaming()
    assert board.registers[REG_CTRL] == 0


def test_sequence_numbers_increase():
    board = FakeBoard()
    device = Adc64Device("adc0", board)
    device.read_register(1)
    device.read_register(2)
    assert [r.seq for r in board.requests] == [0, 1]
    assert board.opened == 1


def test_stale_reply_is_skipped():
    """A late reply to an earlier request is dropped, not taken as the answer."""
    board = FakeBoard({1: 3})
    board.replies.append(
        build_mlink_frame(FrameType.REG_RESPONSE, 99, [RegisterOperation.write(1, 0xDEAD)])
    )
    assert Adc64Device("adc0", board).read_register(1) == 3
    assert not board.replies


def test_only_stale_replies_time_out():
    board = FakeBoard()
    board.reply_override = lambda req: build_mlink_frame(FrameType.REG_RESPONSE, req.seq + 1, req.ops)
    with pytest.raises(DeviceCommunicationError) as excinfo:
        Adc64Device("adc0", board).read_register(1)
    assert excinfo.value.device == "adc0"


def test_mismatched_reply_is_device_error():
    board = FakeBoard()
    board.reply_override = lambda req: build_mlink_frame(FrameType.REG_RESPONSE, req.seq, [])
    with pytest.raises(DeviceCommunicationError):
        Adc64Device("adc0", board).read_register(1)


def test_timeout_is_device_error():
    board = FakeBoard()
    board.raise_on_send = TimeoutError("no response")
    with pytest.raises(DeviceCommunicationError) as excinfo:
        Adc64Device("adc0", board).start_streaming()
    assert "no response" in str(excinfo.value)


def test_close():
    board = FakeBoard()
    device = Adc64Device("adc0", board)
    device.close()
    assert board.closed == 0
    device.read_register(1)
    device.close()
    assert board.closed == 1


def _serve_board(board, replies_held=0, requests=1):
    """Bind a loopback socket and answer ``requests`` datagrams from a thread.

    The first ``replies_held`` replies are sent only after the next request
    arrives, so they reach the client late.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5.0)

    def serve():
        held = 0
        try:
            for _ in range(requests):
                data, peer = sock.recvfrom(65535)
                board.write(data)
                if held < replies_held:
                    held += 1
                    continue
                while board.replies:
                    sock.sendto(board.read(), peer)
        except OSError:
            return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    return sock, thread


@pytest.fixture
def udp_board():
    """A loopback UDP socket answering one register request like a board."""
    sock, thread = _serve_board(FakeBoard({0x40: 0x00AB}))
    yield sock.getsockname()
    thread.join(timeout=2.0)
    sock.close()


def test_udp_roundtrip(udp_board):
    host, port = udp_board
    device = Adc64Device.from_endpoint("adc0", host, port)
    try:
        assert device.read_register(0x40) == 0x00AB
    finally:
        device.close()


def test_udp_late_reply_does_not_desync():
    """After a timeout, the late reply is discarded and later reads succeed."""
    sock, thread = _serve_board(FakeBoard({0x40: 7}), replies_held=1, requests=3)
    host, port = sock.getsockname()
    device = Adc64Device.from_endpoint("adc0", host, port, timeout=0.2)
    try:
        with pytest.raises(DeviceCommunicationError):
            device.read_register(0x40)
        assert device.read_register(0x40) == 7
        assert device.read_register(0x40) == 7
    finally:
        device.close()
        thread.join(timeout=2.0)
        sock.close()


def test_udp_connection_requires_open():
    conn = UDPConnection(Endpoint("127.0.0.1", 1))
    assert not conn.connected
    with pytest.raises(ConnectionError):
        conn.write(b"\x00")
    with pytest.raises(ConnectionError):
        conn.read()


def test_endpoint_str():
    assert str(Endpoint("10.0.0.1", 33300)) == "10.0.0.1:33300"
