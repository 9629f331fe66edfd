"""Control handle interface required by the dispatcher."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..protocol.register import RegisterOperation

# MStream control register and its enable bit
REG_CTRL = 0x0040
CTRL_MSTREAM_ENABLE = 0x0001


@runtime_checkable
class DeviceControl(Protocol):
    """Commands one device accepts.

    Implementations raise :class:`~adc_control.errors.DeviceCommunicationError`
    on failure and must allow at most one command in flight at a time.
    """

    name: str

    def read_register(self, addr: int) -> int: ...

    def read_all_registers(self) -> list[RegisterOperation]: ...

    def write_register(self, op: RegisterOperation) -> None: ...

    def start_streaming(self) -> None: ...

    def stop_streaming(self) -> None: ...
