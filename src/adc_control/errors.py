"""Typed errors raised by the protocol, registry, and device layers.

Every error carries an :class:`ErrorKind` so the dispatcher and the API
boundary can classify failures without inspecting message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure classification surfaced to callers."""

    MALFORMED_FRAME = "malformed-frame"
    UNKNOWN_DEVICE = "unknown-device"
    UNKNOWN_OPERATION = "unknown-operation"
    INVALID_REGISTER = "invalid-register"
    DEVICE = "device"


class AdcControlError(Exception):
    """Base class for all adc-control errors."""

    kind: ErrorKind = ErrorKind.DEVICE


class MalformedFrameError(AdcControlError):
    """Raised when a byte buffer cannot be decoded as a frame."""

    kind = ErrorKind.MALFORMED_FRAME


class UnknownDeviceError(AdcControlError):
    """Raised when a device name is not present in the registry."""

    kind = ErrorKind.UNKNOWN_DEVICE

    def __init__(self, name: str) -> None:
        super().__init__(f"Device not found: {name}")
        self.name = name


class UnknownOperationError(AdcControlError):
    """Raised for a command verb outside the recognized set."""

    kind = ErrorKind.UNKNOWN_OPERATION

    def __init__(self, what: str) -> None:
        super().__init__(f"Unknown operation: {what}")
        self.what = what


class InvalidRegisterError(AdcControlError):
    """Raised when register text does not parse as a 16-bit unsigned value."""

    kind = ErrorKind.INVALID_REGISTER

    def __init__(self, text: str, reason: str = "") -> None:
        message = f"Invalid register value: {text!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.text = text


class DeviceCommunicationError(AdcControlError):
    """Raised by a device control handle when a command fails."""

    kind = ErrorKind.DEVICE

    def __init__(self, device: str, reason: str) -> None:
        super().__init__(f"Device {device}: {reason}")
        self.device = device
        self.reason = reason
