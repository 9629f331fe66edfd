"""ADC64 device control over the MLink UDP control channel."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Protocol, Sequence

from ..errors import DeviceCommunicationError, MalformedFrameError
from ..protocol.mlink import build_reg_request
from ..protocol.parser import match_reads, parse_reg_response
from ..protocol.register import ADDR_MASK, RegisterOperation
from ..transport.udp_connection import READ_TIMEOUT_S, Endpoint, UDPConnection
from .base import CTRL_MSTREAM_ENABLE, REG_CTRL

logger = logging.getLogger(__name__)

# Registers reported by read-all when the configuration does not list any
DEFAULT_REGISTERS: tuple[int, ...] = tuple(range(0x0040, 0x0060))


class Connection(Protocol):
    def open(self) -> None: ...

    def close(self) -> None: ...

    def write(self, data: bytes) -> int: ...

    def read(self) -> bytes: ...


class Adc64Device:
    """Control handle for one ADC64 board.

    Every command is a single MLink register request answered by a single
    register response. Replies to earlier requests that arrive late are
    dropped. Commands on the same device are serialized.
    """

    def __init__(
        self,
        name: str,
        connection: Connection,
        registers: Sequence[int] = DEFAULT_REGISTERS,
    ) -> None:
        self.name = name
        self._connection = connection
        self._registers = tuple(addr & ADDR_MASK for addr in registers)
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self._opened = False

    @classmethod
    def from_endpoint(
        cls,
        name: str,
        host: str,
        port: int,
        registers: Sequence[int] = DEFAULT_REGISTERS,
        timeout: float = READ_TIMEOUT_S,
    ) -> Adc64Device:
        return cls(name, UDPConnection(Endpoint(host, port), timeout), registers)

    @property
    def registers(self) -> tuple[int, ...]:
        return self._registers

    def close(self) -> None:
        with self._lock:
            if self._opened:
                self._connection.close()
                self._opened = False

    def _transact(self, ops: list[RegisterOperation]) -> list[RegisterOperation]:
        """Send one register request and return the reply operations."""
        with self._lock:
            seq = next(self._seq) & 0xFFFF
            request = build_reg_request(seq, ops)
            logger.debug("%s: request seq=%d words=%d", self.name, seq, len(ops))
            try:
                if not self._opened:
                    self._connection.open()
                    self._opened = True
                self._connection.write(request)
                while True:
                    reply = parse_reg_response(self._connection.read(), seq)
                    if reply is not None:
                        return reply
                    logger.debug("%s: dropped stale reply while waiting for seq=%d", self.name, seq)
            except (OSError, MalformedFrameError) as e:
                # ConnectionError and TimeoutError are OSError subclasses
                raise DeviceCommunicationError(self.name, str(e)) from e

    def _read(self, addrs: Sequence[int]) -> list[RegisterOperation]:
        request = [RegisterOperation.read(addr) for addr in addrs]
        reply = self._transact(request)
        try:
            return match_reads(request, reply)
        except MalformedFrameError as e:
            raise DeviceCommunicationError(self.name, str(e)) from e

    def read_register(self, addr: int) -> int:
        return self._read([addr & ADDR_MASK])[0].value

    def read_all_registers(self) -> list[RegisterOperation]:
        if not self._registers:
            return []
        return self._read(self._registers)

    def write_register(self, op: RegisterOperation) -> None:
        if op.is_read:
            raise ValueError("write_register requires a write operation")
        self._transact([op])
        logger.debug("%s: wrote 0x%04x = 0x%04x", self.name, op.addr, op.value)

    def start_streaming(self) -> None:
        logger.info("%s: starting MStream", self.name)
        self.write_register(RegisterOperation.write(REG_CTRL, CTRL_MSTREAM_ENABLE))

    def stop_streaming(self) -> None:
        logger.info("%s: stopping MStream", self.name)
        self.write_register(RegisterOperation.write(REG_CTRL, 0))

    def __repr__(self) -> str:
        return f"Adc64Device(name={self.name!r})"
