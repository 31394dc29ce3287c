"""Connection settings for wired Ethernet boards and the library's defaults."""

from __future__ import annotations

from typing import Optional, Union

DEFAULT_DOMAIN = "blynk-cloud.com"
DEFAULT_PORT = 80
DEFAULT_PORT_SSL = 8441

VERSION = "0.5.4"
HEARTBEAT = 10
TIMEOUT_MS = 3000
MSG_LIMIT = 15
MAX_READBYTES = 256
MAX_SENDBYTES = 128

INFO_CONNECTION = "W5000"

_BASE_MAC = bytes((0xFE, 0xED, 0xBA, 0xFE, 0xFE, 0xED))


def server_port(use_ssl: bool = False) -> int:
    """The default server port, plain or TLS."""
    return DEFAULT_PORT_SSL if use_ssl else DEFAULT_PORT


def select_mac_address(
    token: Union[str, bytes], mac: Optional[bytes] = None
) -> bytes:
    """Return ``mac`` if given, else a MAC derived from the auth token.

    Each token byte is XORed into bytes 1..5 of a fixed base address in turn,
    so the first byte stays fixed and different tokens give different MACs.
    """
    if mac is not None:
        mac = bytes(mac)
        if len(mac) != 6:
            raise ValueError("a MAC address has 6 bytes")
        return mac
    data = token.encode("utf-8") if isinstance(token, str) else bytes(token)
    address = bytearray(_BASE_MAC)
    for offset, byte in enumerate(data):
        address[1 + offset % 5] ^= byte
    return bytes(address)