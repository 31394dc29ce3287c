"""Minimal SNTP client returning Unix time."""

from __future__ import annotations

import logging
import socket
import struct
import time

log = logging.getLogger(__name__)

NTP_SERVER = "time.nist.gov"
NTP_PORT = 123
NTP_PACKET_SIZE = 48
SEVENTY_YEARS = 2208988800

_WRAP = 1 << 32


class NtpError(TimeoutError):
    """Raised when no usable answer came from the time server."""


def build_ntp_request() -> bytes:
    """The 48-byte client request packet."""
    packet = bytearray(NTP_PACKET_SIZE)
    packet[0] = 0b11100011  # LI, version, mode
    packet[1] = 0  # stratum
    packet[2] = 6  # polling interval
    packet[3] = 0xEC  # peer clock precision
    packet[12:16] = bytes((49, 0x4E, 49, 52))
    return bytes(packet)


def parse_ntp_response(packet: bytes) -> int:
    """Unix time from the transmit timestamp seconds of a server reply."""
    if len(packet) < NTP_PACKET_SIZE:
        raise ValueError(f"NTP reply too short: {len(packet)} bytes")
    (seconds_since_1900,) = struct.unpack_from(">I", packet, 40)
    return (seconds_since_1900 - SEVENTY_YEARS) % _WRAP


def ntp_get_time(
    server: str = NTP_SERVER,
    port: int = NTP_PORT,
    attempts: int = 10,
    timeout: float = 1.0,
) -> int:
    """Ask ``server`` for the time, retrying; raise NtpError if all attempts fail."""
    request = build_ntp_request()
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        for _ in range(attempts):
            try:
                sock.sendto(request, (server, port))
            except OSError as exc:
                log.debug("NTP send failed: %s", exc)
            else:
                deadline = time.monotonic() + timeout
                while True:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    sock.settimeout(remaining)
                    try:
                        data, _ = sock.recvfrom(512)
                    except TimeoutError:
                        break
                    except OSError as exc:
                        log.debug("NTP receive failed: %s", exc)
                        break
                    try:
                        epoch = parse_ntp_response(data)
                    except ValueError:
                        continue
                    log.info("Unix time = %d", epoch)
                    return epoch
            log.info("Retry NTP")
    log.warning("NTP failed")
    raise NtpError(f"no NTP answer from {server}:{port}")