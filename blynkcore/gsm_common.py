"""Helpers shared by the GSM modem drivers: IP parsing, hex decoding, baud probing."""

from __future__ import annotations

import logging
import time
from ipaddress import IPv4Address
from typing import Protocol

log = logging.getLogger(__name__)

BAUD_RATES = (
    115200, 57600, 38400, 19200, 9600, 74400, 74880,
    230400, 460800, 2400, 4800, 14400, 28800,
)

_HEX_DIGITS = "0123456789abcdefABCDEF"


class SerialPort(Protocol):
    """The part of a serial port that :func:`auto_baud` uses."""

    def begin(self, rate: int) -> None: ...

    def print(self, text: str) -> None: ...

    def read_string(self) -> str: ...


def ip_from_string(text: str) -> IPv4Address:
    """Parse a dotted IPv4 address out of a modem reply.

    Non-digit characters are skipped; parsing stops at the first one seen
    after the third dot. More than three dots yields ``0.0.0.0``.
    """
    parts = [0, 0, 0, 0]
    part = 0
    for char in text:
        if char == ".":
            part += 1
            if part > 3:
                return IPv4Address(0)
        elif "0" <= char <= "9":
            parts[part] = parts[part] * 10 + int(char)
        elif part == 3:
            break
    return IPv4Address(bytes(p & 0xFF for p in parts))


def _hex_byte(chunk: str) -> int:
    """Value of the leading hex digits of ``chunk`` as a byte, like strtol."""
    chunk = chunk.lstrip(" \t\r\n\v\f")
    negative = False
    if chunk[:1] in ("+", "-"):
        negative = chunk[0] == "-"
        chunk = chunk[1:]
    digits = ""
    for char in chunk:
        if char not in _HEX_DIGITS:
            break
        digits += char
    value = int(digits, 16) if digits else 0
    return (-value if negative else value) & 0xFF


def decode_hex_7bit(text: str) -> str:
    """Decode hex-encoded GSM 7-bit packed septets."""
    result = []
    remainder = 0
    bitstate = 7
    for start in range(0, len(text), 2):
        byte = _hex_byte(text[start:start + 2])
        shifted = (byte << (7 - bitstate)) & 0xFF
        result.append(chr((shifted + remainder) & 0x7F))
        remainder = byte >> bitstate
        bitstate -= 1
        if bitstate == 0:
            result.append(chr(remainder))
            remainder = 0
            bitstate = 7
    return "".join(result)


def decode_hex_8bit(text: str) -> str:
    """Decode a string of hex byte pairs, one character per byte."""
    return "".join(
        chr(_hex_byte(text[start:start + 2])) for start in range(0, len(text), 2)
    )


def decode_hex_16bit(text: str, unicode_to_hex: bool = False) -> str:
    """Decode hex UCS-2 code units; only those below 256 are kept.

    A unit with a non-zero high byte becomes ``?``, or ``\\x`` followed by
    its four hex digits when ``unicode_to_hex`` is set.
    """
    result = []
    for start in range(0, len(text), 4):
        if _hex_byte(text[start:start + 2]):
            if unicode_to_hex:
                result.append("\\x" + text[start:start + 4])
            else:
                result.append("?")
        else:
            result.append(chr(_hex_byte(text[start + 2:start + 4])))
    return "".join(result)


def auto_baud(serial: SerialPort, minimum: int = 9600, maximum: int = 115200) -> int:
    """Find the baud rate a modem answers ``AT`` on; return 0 if none does."""
    for rate in BAUD_RATES:
        if rate < minimum or rate > maximum:
            continue
        log.debug("Trying baud rate %d ...", rate)
        serial.begin(rate)
        time.sleep(0.01)
        for _ in range(3):
            serial.print("AT\r\n")
            if "OK" in serial.read_string():
                log.debug("Modem responded at rate %d", rate)
                return rate
    return 0