"""Protocol layer: register word codec, register frames, and MLink framing."""

from .register import (
    RegHex,
    RegisterOperation,
    decode_word,
    deserialize,
    encode_word,
    parse_hex16,
    serialize,
)
from .mlink import FrameType, MLinkFrame, build_mlink_frame, parse_mlink_frame
