"""Register word codec and register frame layer.

Word layout (32-bit, little-endian on the wire)::

    +------+------------------------+------------------+
    | Read |    Register number     |  Register value  |
    | b31  |      b30 .. b16        |    b15 .. b0     |
    +------+------------------------+------------------+

- Read: 1 for a read request, 0 for a write
- Register number: 15 bits, masked on encode
- Register value: 16 bits, masked on encode, zero for reads

A register frame is a plain concatenation of words, one per operation,
word *i* at byte offset ``4 * i``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from ..errors import InvalidRegisterError, MalformedFrameError

logger = logging.getLogger(__name__)

WORD_SIZE = 4
READ_FLAG = 0x80000000
ADDR_MASK = 0x7FFF
VALUE_MASK = 0xFFFF

HEX16_RE = re.compile(r"(0[xX])?[0-9a-fA-F]+")


@dataclass(frozen=True)
class RegHex:
    """Hexadecimal presentation of a register address and value."""

    Addr: str
    Value: str

    def to_dict(self) -> dict[str, str]:
        return {"Addr": self.Addr, "Value": self.Value}


@dataclass(frozen=True, eq=False)
class RegisterOperation:
    """A single register read or write.

    A read request carries no value on the wire, so two reads of the same
    register compare equal whatever their ``value`` field holds. Register
    contents returned by a read are reported in write form, ``(addr, value)``.
    """

    is_read: bool
    addr: int
    value: int = 0  # ignored for reads

    def _key(self) -> tuple[bool, int, int]:
        return self.is_read, self.addr, 0 if self.is_read else self.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegisterOperation):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @classmethod
    def read(cls, addr: int) -> RegisterOperation:
        return cls(is_read=True, addr=addr)

    @classmethod
    def write(cls, addr: int, value: int) -> RegisterOperation:
        return cls(is_read=False, addr=addr, value=value)

    @classmethod
    def from_hex(cls, addr: str, value: str) -> RegisterOperation:
        """Build a write operation from hexadecimal address and value text."""
        return cls.write(parse_hex16(addr), parse_hex16(value))

    def hex(self) -> tuple[str, str]:
        return f"0x{self.addr:04x}", f"0x{self.value:04x}"

    def to_hex(self) -> RegHex:
        addr, value = self.hex()
        return RegHex(Addr=addr, Value=value)

    def __repr__(self) -> str:
        kind = "read" if self.is_read else "write"
        return f"RegisterOperation({kind}, addr=0x{self.addr:04X}, value=0x{self.value:04X})"


def parse_hex16(text: str) -> int:
    """Parse hexadecimal text (``0x`` prefix optional) as an unsigned 16-bit int.

    Raises:
        InvalidRegisterError: If the text is not hex or does not fit 16 bits.
    """
    if not isinstance(text, str):
        raise InvalidRegisterError(repr(text), "expected hexadecimal text")
    if not HEX16_RE.fullmatch(text):
        raise InvalidRegisterError(text, "not hexadecimal")
    number = int(text, 16)
    if number > VALUE_MASK:
        raise InvalidRegisterError(text, "does not fit 16 bits")
    return number


def pack_word(op: RegisterOperation) -> int:
    """Return the 32-bit integer form of a register operation."""
    word = (op.addr & ADDR_MASK) << 16
    if op.is_read:
        return READ_FLAG | word
    return word | (op.value & VALUE_MASK)


def encode_word(op: RegisterOperation) -> bytes:
    """Encode a register operation into a 4-byte little-endian word."""
    return pack_word(op).to_bytes(WORD_SIZE, "little")


def decode_word(word: bytes) -> RegisterOperation:
    """Decode a 4-byte little-endian word into a register operation."""
    if len(word) != WORD_SIZE:
        raise MalformedFrameError(f"Register word must be 4 bytes, got {len(word)}")
    raw = int.from_bytes(word, "little")
    return RegisterOperation(
        is_read=bool(raw & READ_FLAG),
        addr=(raw >> 16) & ADDR_MASK,
        value=raw & VALUE_MASK,
    )


def frame_size(ops: Sequence[RegisterOperation]) -> int:
    return len(ops) * WORD_SIZE


def serialize(
    ops: Sequence[RegisterOperation],
    buf: bytearray | memoryview | None = None,
    offset: int = 0,
) -> bytes | bytearray | memoryview:
    """Serialize register operations, one word each, in order.

    Args:
        ops: Operations to encode.
        buf: Optional caller-supplied buffer. When given, the words are
            written in place starting at ``offset`` and ``buf`` is returned,
            so an outer frame can checksum header and words together.
        offset: Byte offset into ``buf``.

    Returns:
        ``buf`` when supplied, otherwise a new ``bytes`` of ``4 * len(ops)``.

    Raises:
        ValueError: If ``buf`` is too small to hold all words at ``offset``.
    """
    size = frame_size(ops)
    if buf is None:
        out = bytearray(size)
        _write_words(ops, out, 0)
        return bytes(out)

    if offset < 0 or len(buf) - offset < size:
        raise ValueError(
            f"Buffer too small: need {size} bytes at offset {offset}, "
            f"have {len(buf) - offset}"
        )
    _write_words(ops, buf, offset)
    return buf


def _write_words(ops: Sequence[RegisterOperation], buf, offset: int) -> None:
    for i, op in enumerate(ops):
        start = offset + i * WORD_SIZE
        buf[start : start + WORD_SIZE] = encode_word(op)
        logger.debug("Register word: %s", bytes(buf[start : start + WORD_SIZE]).hex())


def deserialize(data: bytes | bytearray | memoryview) -> list[RegisterOperation]:
    """Decode a register frame into operations, preserving byte order.

    An empty buffer decodes to an empty list.

    Raises:
        MalformedFrameError: If the length is not a multiple of 4.
    """
    if len(data) % WORD_SIZE != 0:
        raise MalformedFrameError(
            f"Register frame length must be a multiple of {WORD_SIZE}, got {len(data)}"
        )
    return [
        decode_word(bytes(data[offset : offset + WORD_SIZE]))
        for offset in range(0, len(data), WORD_SIZE)
    ]
