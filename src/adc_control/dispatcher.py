"""Command dispatch: route register and MStream verbs to devices.

Commands are one of five verbs aimed at a device name, or at ``"all"``
for the streaming verbs. Results and errors come back as an
:class:`Outcome` that the HTTP, MCP, and CLI front ends render in their
own terms.

Broadcasts run sequentially and stop at the first failing device. Devices
before it have completed; it and every device after it are left untouched
or in an unknown state. ``Outcome.devices`` lists the completed ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from .errors import AdcControlError, ErrorKind, InvalidRegisterError, UnknownOperationError
from .protocol.register import ADDR_MASK, RegisterOperation
from .registry import ALL_DEVICES, DeviceRegistry

logger = logging.getLogger(__name__)


class Verb(str, Enum):
    """Commands understood by the dispatcher."""

    READ = "read"
    READ_ALL = "read-all"
    WRITE = "write"
    STREAM_START = "stream-start"
    STREAM_STOP = "stream-stop"

    @classmethod
    def parse(cls, text: str) -> Verb:
        try:
            return cls(text)
        except ValueError:
            raise UnknownOperationError(str(text)) from None


STREAM_VERBS = frozenset({Verb.STREAM_START, Verb.STREAM_STOP})


@dataclass(frozen=True)
class Request:
    """A parsed command ready for dispatch."""

    verb: Verb
    target: str
    addr: int | None = None
    value: int | None = None

    @classmethod
    def build(
        cls,
        verb: str | Verb,
        target: str,
        addr: int | None = None,
        value: int | None = None,
    ) -> Request:
        """Validate a command and turn it into a request.

        Raises:
            UnknownOperationError: For a verb outside :class:`Verb`.
            InvalidRegisterError: When ``read`` lacks an address or
                ``write`` lacks an address or value.
        """
        parsed = verb if isinstance(verb, Verb) else Verb.parse(verb)
        if parsed in (Verb.READ, Verb.WRITE) and addr is None:
            raise InvalidRegisterError("", f"{parsed.value} requires a register address")
        if parsed is Verb.WRITE and value is None:
            raise InvalidRegisterError("", "write requires a register value")
        return cls(verb=parsed, target=target, addr=addr, value=value)


@dataclass
class Outcome:
    """Transport-neutral result of one dispatched command."""

    ok: bool
    payload: list[RegisterOperation] | None = None
    error: AdcControlError | None = None
    devices: list[str] = field(default_factory=list)

    @classmethod
    def success(
        cls, payload: list[RegisterOperation] | None = None, devices: list[str] | None = None
    ) -> Outcome:
        return cls(ok=True, payload=payload, devices=devices or [])

    @classmethod
    def failure(cls, error: AdcControlError, devices: list[str] | None = None) -> Outcome:
        return cls(ok=False, error=error, devices=devices or [])

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""


class Dispatcher:
    """Routes requests to devices held in a :class:`DeviceRegistry`."""

    def __init__(self, registry: DeviceRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    def handle(
        self,
        verb: str,
        target: str,
        addr: int | None = None,
        value: int | None = None,
    ) -> Outcome:
        """Build and dispatch a request from its text form.

        A malformed request fails here and never reaches the registry.
        """
        try:
            request = Request.build(verb, target, addr, value)
        except AdcControlError as e:
            logger.warning("Rejected request %s %s: %s", verb, target, e)
            return Outcome.failure(e)
        return self.dispatch(request)

    def dispatch(self, request: Request) -> Outcome:
        logger.debug("Dispatching %s to %s", request.verb.value, request.target)
        if request.verb in STREAM_VERBS and request.target == ALL_DEVICES:
            return self._broadcast(request.verb)
        try:
            return self._dispatch_one(request)
        except AdcControlError as e:
            logger.warning("%s on %s failed: %s", request.verb.value, request.target, e)
            return Outcome.failure(e)

    def _dispatch_one(self, request: Request) -> Outcome:
        device = self._registry.resolve(request.target)
        verb = request.verb
        if verb is Verb.READ:
            addr = request.addr & ADDR_MASK
            value = device.read_register(addr)
            return Outcome.success([RegisterOperation.write(addr, value)])
        elif verb is Verb.READ_ALL:
            return Outcome.success(device.read_all_registers())
        elif verb is Verb.WRITE:
            device.write_register(RegisterOperation.write(request.addr, request.value))
            return Outcome.success()
        elif verb is Verb.STREAM_START:
            device.start_streaming()
            return Outcome.success(devices=[request.target])
        elif verb is Verb.STREAM_STOP:
            device.stop_streaming()
            return Outcome.success(devices=[request.target])
        # Every Verb member is handled above
        raise UnknownOperationError(str(verb))

    def _broadcast(self, verb: Verb) -> Outcome:
        completed: list[str] = []
        for name, device in self._registry.all_devices():
            try:
                if verb is Verb.STREAM_START:
                    device.start_streaming()
                else:
                    device.stop_streaming()
            except AdcControlError as e:
                logger.warning(
                    "%s stopped at device %s after %d device(s): %s",
                    verb.value, name, len(completed), e,
                )
                return Outcome.failure(e, completed)
            completed.append(name)
        logger.info("%s completed on %d device(s)", verb.value, len(completed))
        return Outcome.success(devices=completed)
