"""In-memory device used in place of real hardware."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..errors import DeviceCommunicationError
from ..protocol.register import ADDR_MASK, VALUE_MASK, RegisterOperation
from .base import CTRL_MSTREAM_ENABLE, REG_CTRL


@dataclass
class InMemoryDevice:
    """A device whose registers live in a dict.

    ``fail_on`` names methods that raise :class:`DeviceCommunicationError`,
    and ``calls`` records every method invoked, in order.
    """

    name: str
    registers: dict[int, int] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)
    calls: list[str] = field(init=False, default_factory=list)
    _lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)

    @property
    def streaming(self) -> bool:
        return bool(self.registers.get(REG_CTRL, 0) & CTRL_MSTREAM_ENABLE)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise DeviceCommunicationError(self.name, f"{method} failed")

    def read_register(self, addr: int) -> int:
        with self._lock:
            self._enter("read_register")
            return self.registers.get(addr & ADDR_MASK, 0)

    def read_all_registers(self) -> list[RegisterOperation]:
        with self._lock:
            self._enter("read_all_registers")
            return [RegisterOperation.write(addr, value) for addr, value in self.registers.items()]

    def write_register(self, op: RegisterOperation) -> None:
        with self._lock:
            self._enter("write_register")
            self.registers[op.addr & ADDR_MASK] = op.value & VALUE_MASK

    def start_streaming(self) -> None:
        with self._lock:
            self._enter("start_streaming")
            self.registers[REG_CTRL] = self.registers.get(REG_CTRL, 0) | CTRL_MSTREAM_ENABLE

    def stop_streaming(self) -> None:
        with self._lock:
            self._enter("stop_streaming")
            self.registers[REG_CTRL] = self.registers.get(REG_CTRL, 0) & ~CTRL_MSTREAM_ENABLE
