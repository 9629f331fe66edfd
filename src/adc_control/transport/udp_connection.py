"""UDP connection to an ADC64 control port.

Each control command is one request datagram answered by one response
datagram. Partial datagrams are never buffered across calls.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CONTROL_PORT = 33300
READ_TIMEOUT_S = 1.0
MAX_DATAGRAM_SIZE = 65535


@dataclass
class Endpoint:
    """Network address of a device control port."""

    host: str
    port: int = CONTROL_PORT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class UDPConnection:
    """Manages the UDP socket used to talk to one device.

    Usage::

        conn = UDPConnection(Endpoint("192.168.1.10"))
        conn.open()
        conn.write(frame_bytes)
        response = conn.read()
        conn.close()
    """

    def __init__(self, endpoint: Endpoint, timeout: float = READ_TIMEOUT_S) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._sock: socket.socket | None = None

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """Create the socket and bind it to the device address.

        Raises:
            ConnectionError: If the socket cannot be created or connected.
        """
        if self._sock is not None:
            return
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.settimeout(self._timeout)
            sock.connect((self._endpoint.host, self._endpoint.port))
        except OSError as e:
            raise ConnectionError(f"Could not open UDP socket to {self._endpoint}: {e}") from e
        self._sock = sock
        logger.info("Opened control socket to %s", self._endpoint)

    def close(self) -> None:
        """Close the socket."""
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None
            logger.info("Closed control socket to %s", self._endpoint)

    def write(self, data: bytes) -> int:
        """Send one datagram.

        Raises:
            ConnectionError: If not connected.
            OSError: If the send fails.
        """
        if self._sock is None:
            raise ConnectionError("Not connected to device")
        return self._sock.send(data)

    def read(self) -> bytes:
        """Receive one datagram.

        Raises:
            ConnectionError: If not connected.
            TimeoutError: If nothing arrives within the read timeout.
        """
        if self._sock is None:
            raise ConnectionError("Not connected to device")
        try:
            return self._sock.recv(MAX_DATAGRAM_SIZE)
        except socket.timeout as e:
            raise TimeoutError(
                f"No response from {self._endpoint} within {self._timeout}s"
            ) from e
