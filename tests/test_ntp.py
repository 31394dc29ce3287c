import socket
import struct
import threading

import pytest

from blynkcore.ntp import (
    NTP_PACKET_SIZE,
    SEVENTY_YEARS,
    NtpError,
    build_ntp_request,
    ntp_get_time,
    parse_ntp_response,
)


def _reply(seconds_since_1900: int) -> bytes:
    packet = bytearray(NTP_PACKET_SIZE)
    packet[0] = 0x24
    struct.pack_into(">I", packet, 40, seconds_since_1900)
    return bytes(packet)


def test_request_layout():
    packet = build_ntp_request()
    assert len(packet) == 48
    assert packet[:4] == bytes((0xE3, 0, 6, 0xEC))
    assert packet[4:12] == bytes(8)
    assert packet[12:16] == bytes((49, 0x4E, 49, 52))
    assert packet[16:] == bytes(32)


def test_parse_round_trip():
    epoch = 1_000_000_000
    assert parse_ntp_response(_reply(epoch + SEVENTY_YEARS)) == epoch


def test_parse_wraps_before_1970():
    result = parse_ntp_response(_reply(0))
    assert 0 <= result < 2**32
    assert (result + SEVENTY_YEARS) % 2**32 == 0


def test_parse_short_packet():
    with pytest.raises(ValueError):
        parse_ntp_response(bytes(40))


def test_get_time_from_local_server():
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    server.settimeout(5)
    port = server.getsockname()[1]
    epoch = 1_500_000_000
    received = []

    def serve():
        data, addr = server.recvfrom(512)
        received.append(data)
        server.sendto(_reply(epoch + SEVENTY_YEARS), addr)

    thread = threading.Thread(target=serve)
    thread.start()
    try:
        assert ntp_get_time("127.0.0.1", port, attempts=2, timeout=2.0) == epoch
    finally:
        thread.join()
        server.close()
    assert received == [build_ntp_request()]


def test_get_time_fails_without_server():
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(NtpError):
        ntp_get_time("127.0.0.1", port, attempts=2, timeout=0.1)