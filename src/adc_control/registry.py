"""Device registry: logical device names to control handles."""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Mapping

from .device.base import DeviceControl
from .errors import UnknownDeviceError

logger = logging.getLogger(__name__)

ALL_DEVICES = "all"


class DeviceRegistry:
    """Maps device names to control handles.

    Devices are added during start-up. Lookups read an immutable snapshot,
    so ``resolve`` and ``all_devices`` may be called from many request
    threads at once.
    """

    def __init__(self, devices: Mapping[str, DeviceControl] | None = None) -> None:
        self._lock = threading.Lock()
        self._devices: Mapping[str, DeviceControl] = MappingProxyType({})
        for name, handle in (devices or {}).items():
            self.add(name, handle)

    def add(self, name: str, handle: DeviceControl) -> None:
        """Register a device handle under ``name``.

        Raises:
            ValueError: If the name is empty, reserved, or already taken.
        """
        if not name:
            raise ValueError("Device name must not be empty")
        if name == ALL_DEVICES:
            raise ValueError(f"Device name {ALL_DEVICES!r} is reserved for broadcast commands")
        with self._lock:
            if name in self._devices:
                raise ValueError(f"Duplicate device name: {name}")
            devices = dict(self._devices)
            devices[name] = handle
            self._devices = MappingProxyType(devices)
        logger.debug("Registered device %s", name)

    def resolve(self, name: str) -> DeviceControl:
        """Return the handle registered under ``name``.

        Raises:
            UnknownDeviceError: If no such device is registered.
        """
        try:
            return self._devices[name]
        except KeyError:
            raise UnknownDeviceError(name) from None

    def all_devices(self) -> list[tuple[str, DeviceControl]]:
        """Return every ``(name, handle)`` pair in registration order."""
        return list(self._devices.items())

    def names(self) -> list[str]:
        return list(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, name: object) -> bool:
        return name in self._devices
