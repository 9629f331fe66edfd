"""MLink frame builder and parser for the ADC64 control channel.

Frame layout (all fields little-endian)::

    +--------+--------+--------+--------+--------+--------+------------------+--------+
    |  Type  |  Sync  |  Seq   |  Len   |  Src   |  Dst   |     Payload      |  CRC   |
    | 2 bytes| 2 bytes| 2 bytes| 2 bytes| 2 bytes| 2 bytes|  4-byte words    | 4 bytes|
    +--------+--------+--------+--------+--------+--------+------------------+--------+

- Sync: 0x2A50
- Len: total frame length in 32-bit words, header and CRC included
- CRC: CRC-32 over header + payload

The register payload is written straight into the frame buffer by
:func:`~adc_control.protocol.register.serialize` so the CRC can be
computed over the finished bytes.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from enum import IntEnum

from ..errors import MalformedFrameError
from .register import WORD_SIZE, RegisterOperation, deserialize, frame_size, serialize

SYNC = 0x2A50
HEADER_SIZE = 12
CRC_SIZE = 4
MIN_FRAME_SIZE = HEADER_SIZE + CRC_SIZE
HOST_ADDRESS = 0xFEFE
DEVICE_ADDRESS = 0xFFFF


class FrameType(IntEnum):
    """MLink frame types used on the control channel."""

    REG_REQUEST = 0x0101
    REG_RESPONSE = 0x0102


@dataclass
class MLinkFrame:
    """A parsed MLink frame carrying register operations."""

    type: int
    seq: int
    src: int = HOST_ADDRESS
    dst: int = DEVICE_ADDRESS
    ops: list[RegisterOperation] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"MLinkFrame(type=0x{self.type:04X}, seq={self.seq}, "
            f"src=0x{self.src:04X}, dst=0x{self.dst:04X}, ops={len(self.ops)})"
        )


def build_mlink_frame(
    frame_type: int,
    seq: int,
    ops: list[RegisterOperation],
    src: int = HOST_ADDRESS,
    dst: int = DEVICE_ADDRESS,
) -> bytes:
    """Build an MLink frame carrying the given register operations.

    Args:
        frame_type: MLink frame type, see :class:`FrameType`.
        seq: Sequence number, truncated to 16 bits.
        ops: Register operations in wire order.
        src: Source address.
        dst: Destination address.

    Returns:
        The complete frame including the trailing CRC.
    """
    total = HEADER_SIZE + frame_size(ops) + CRC_SIZE
    buf = bytearray(total)
    buf[0:2] = (frame_type & 0xFFFF).to_bytes(2, "little")
    buf[2:4] = SYNC.to_bytes(2, "little")
    buf[4:6] = (seq & 0xFFFF).to_bytes(2, "little")
    buf[6:8] = (total // WORD_SIZE).to_bytes(2, "little")
    buf[8:10] = (src & 0xFFFF).to_bytes(2, "little")
    buf[10:12] = (dst & 0xFFFF).to_bytes(2, "little")
    serialize(ops, buf, HEADER_SIZE)
    buf[total - CRC_SIZE :] = mlink_crc(buf[: total - CRC_SIZE]).to_bytes(CRC_SIZE, "little")
    return bytes(buf)


def build_reg_request(seq: int, ops: list[RegisterOperation]) -> bytes:
    """Build a register request frame addressed to the device."""
    return build_mlink_frame(FrameType.REG_REQUEST, seq, ops)


def mlink_crc(data: bytes | bytearray) -> int:
    return zlib.crc32(bytes(data)) & 0xFFFFFFFF


def parse_mlink_frame(data: bytes) -> MLinkFrame:
    """Parse a datagram into an MLink frame.

    Raises:
        MalformedFrameError: On short data, bad sync, length mismatch,
            CRC mismatch, or a payload that is not whole register words.
    """
    if len(data) < MIN_FRAME_SIZE:
        raise MalformedFrameError(f"MLink frame too short: {len(data)} bytes")

    sync = int.from_bytes(data[2:4], "little")
    if sync != SYNC:
        raise MalformedFrameError(f"Bad MLink sync: 0x{sync:04X}")

    length = int.from_bytes(data[6:8], "little") * WORD_SIZE
    if length < MIN_FRAME_SIZE or length > len(data):
        raise MalformedFrameError(
            f"MLink length field {length} does not match {len(data)} bytes received"
        )

    expected_crc = int.from_bytes(data[length - CRC_SIZE : length], "little")
    actual_crc = mlink_crc(data[: length - CRC_SIZE])
    if actual_crc != expected_crc:
        raise MalformedFrameError(
            f"MLink CRC mismatch: expected 0x{expected_crc:08X}, got 0x{actual_crc:08X}"
        )

    return MLinkFrame(
        type=int.from_bytes(data[0:2], "little"),
        seq=int.from_bytes(data[4:6], "little"),
        src=int.from_bytes(data[8:10], "little"),
        dst=int.from_bytes(data[10:12], "little"),
        ops=deserialize(data[HEADER_SIZE : length - CRC_SIZE]),
    )
