"""Response parsing for device replies on the control channel."""

from __future__ import annotations

from ..errors import MalformedFrameError
from .mlink import FrameType, MLinkFrame, parse_mlink_frame
from .register import RegisterOperation


def parse_reg_response(data: bytes, seq: int) -> list[RegisterOperation] | None:
    """Parse a register response datagram and return its operations.

    Args:
        data: Raw datagram received from the device.
        seq: Sequence number of the request being waited on.

    Returns:
        The reply operations, or ``None`` when the datagram answers a
        different request, e.g. a late reply to one that timed out.

    Raises:
        MalformedFrameError: If the frame is invalid or is not a register
            response.
    """
    frame = parse_mlink_frame(data)
    if frame.type != FrameType.REG_RESPONSE:
        raise MalformedFrameError(f"Unexpected MLink frame type 0x{frame.type:04X}")
    if not answers(frame, seq):
        return None
    return frame.ops


def answers(frame: MLinkFrame, seq: int) -> bool:
    return frame.seq == seq & 0xFFFF


def match_reads(
    requested: list[RegisterOperation], replied: list[RegisterOperation]
) -> list[RegisterOperation]:
    """Pair a read request with its reply word by word.

    The device answers each read word with the same register number and the
    current value. The reply is returned in request order.

    Raises:
        MalformedFrameError: If the reply has a different word count or
            register numbers.
    """
    if len(requested) != len(replied):
        raise MalformedFrameError(
            f"Expected {len(requested)} register words in reply, got {len(replied)}"
        )
    for want, got in zip(requested, replied):
        if want.addr != got.addr:
            raise MalformedFrameError(
                f"Reply register 0x{got.addr:04X} does not match request 0x{want.addr:04X}"
            )
    return [RegisterOperation.write(op.addr, op.value) for op in replied]
