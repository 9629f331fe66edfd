"""Transport layer: datagram I/O to device control ports."""

from .udp_connection import CONTROL_PORT, Endpoint, UDPConnection
