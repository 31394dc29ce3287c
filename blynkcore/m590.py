"""Driver for the Neoway M590 GSM modem over an AT-command stream."""

from __future__ import annotations

import logging
import re
import time
from enum import IntEnum
from ipaddress import IPv4Address
from typing import List, Optional, Protocol, Tuple, Union

from .fifo import Fifo, FifoFull
from .gsm_common import decode_hex_8bit, decode_hex_16bit, ip_from_string

log = logging.getLogger(__name__)

GSM_NL = "\r\n"
GSM_OK = "OK" + GSM_NL
GSM_ERROR = "ERROR" + GSM_NL

MUX_COUNT = 2
RX_BUFFER = 256
STREAM_TIMEOUT_MS = 1000

_INT_RE = re.compile(r"\s*([+-]?\d+)")


class Stream(Protocol):
    """The byte stream the modem is attached to."""

    def write(self, data: bytes) -> int: ...

    def read(self) -> int: ...

    def available(self) -> int: ...

    def flush(self) -> None: ...


class SimStatus(IntEnum):
    ERROR = 0
    READY = 1
    LOCKED = 2


class RegStatus(IntEnum):
    UNREGISTERED = 0
    OK_HOME = 1
    DENIED = 2
    SEARCHING = 3
    UNKNOWN = 4
    OK_ROAMING = 5


def _to_int(text: str) -> int:
    """Leading integer of ``text``, 0 if there is none."""
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _yield() -> None:
    time.sleep(0.0005)


def _sleep_ms(ms: int) -> None:
    time.sleep(ms / 1000)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


def _format(arg: object) -> str:
    if isinstance(arg, bool):
        return str(int(arg))
    if isinstance(arg, (bytes, bytearray)):
        return bytes(arg).decode("latin-1")
    return str(arg)


class GsmClient:
    """One TCP socket multiplexed over the modem."""

    def __init__(self, modem: "ModemM590", mux: int = 1) -> None:
        if not 0 <= mux < MUX_COUNT:
            raise ValueError(f"mux must be in range 0..{MUX_COUNT - 1}")
        self._modem = modem
        self.mux = mux
        self._connected = False
        self._rx: Fifo[int] = Fifo(RX_BUFFER)
        modem._sockets[mux] = self

    def connect(self, host: Union[str, IPv4Address], port: int) -> bool:
        """Open a TCP connection to ``host:port``."""
        self.stop()
        self._rx.clear()
        self._connected = self._modem._modem_connect(str(host), port, self.mux)
        return self._connected

    def stop(self) -> None:
        """Close the connection and drop buffered data."""
        self._modem.send_at("+TCPCLOSE=", self.mux)
        self._connected = False
        self._modem.wait_response(STREAM_TIMEOUT_MS)
        self._rx.clear()

    def write(self, data: Union[bytes, bytearray, str, int, None]) -> int:
        """Send data; return the number of bytes accepted by the modem."""
        if data is None:
            return 0
        if isinstance(data, int):
            payload = bytes((data,))
        elif isinstance(data, str):
            payload = data.encode("utf-8")
        else:
            payload = bytes(data)
        return self._modem._modem_send(payload, self.mux)

    def available(self) -> int:
        """Number of received bytes ready to read."""
        if not self._rx.size() and self._connected:
            self._modem.maintain()
        return self._rx.size()

    def read(self, size: int = 1) -> bytes:
        """Read up to ``size`` bytes, waiting while the socket stays open."""
        out = bytearray()
        while len(out) < size:
            chunk = self._rx.get_many(size - len(out))
            if chunk:
                out.extend(chunk)
                continue
            if not self._connected:
                break
            self._modem.maintain()
        return bytes(out)

    def flush(self) -> None:
        self._modem.stream.flush()

    def connected(self) -> bool:
        """True while data is buffered or the socket is open."""
        if self.available():
            return True
        return self._connected

    def __bool__(self) -> bool:
        return self.connected()


class ModemM590:
    """AT-command driver for the M590 modem."""

    def __init__(self, stream: Stream) -> None:
        self.stream = stream
        self._sockets: List[Optional[GsmClient]] = [None] * MUX_COUNT

    # Basic functions

    def begin(self) -> bool:
        return self.init()

    def init(self) -> bool:
        """Check the modem answers, reset it to factory settings, echo off."""
        if not self.test_at():
            return False
        self.send_at("&FZE0")
        if self.wait_response(STREAM_TIMEOUT_MS) != 1:
            return False
        self.get_sim_status()
        return True

    def set_baud(self, baud: int) -> None:
        self.send_at("+IPR=", baud)

    def test_at(self, timeout: int = 10000) -> bool:
        """Send ``AT`` until the modem answers OK or ``timeout`` ms pass."""
        start = time.monotonic()
        while _elapsed_ms(start) < timeout:
            self.send_at("")
            if self.wait_response(200) == 1:
                _sleep_ms(100)
                return True
            _sleep_ms(100)
        return False

    def maintain(self) -> None:
        """Process unsolicited replies already waiting on the stream."""
        self.wait_response(10, None, None)

    def factory_default(self) -> bool:
        self.send_at("&FZE0&W")
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at("+ICF=3,1")
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at("+ENPWRSAVE=0")
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at("+XISP=0")
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at("&W")
        return self.wait_response(STREAM_TIMEOUT_MS) == 1

    def get_modem_info(self) -> str:
        self.send_at("I")
        index, res = self._wait_response_data(1000)
        if index != 1:
            return ""
        res = res.replace(GSM_NL + "OK" + GSM_NL, "")
        res = res.replace(GSM_NL, " ")
        return res.strip()

    def has_ssl(self) -> bool:
        return False

    # Power functions

    def restart(self) -> bool:
        if not self.test_at():
            return False
        self.send_at("+CFUN=15")
        if self.wait_response(10000) != 1:
            return False
        self.wait_response(60000, GSM_NL + "+PBREADY" + GSM_NL)
        return self.init()

    def poweroff(self) -> bool:
        self.send_at("+CPWROFF")
        return self.wait_response(3000) == 1

    def sleep_enable(self, enable: bool = True) -> bool:
        self.send_at("+ENPWRSAVE=", bool(enable))
        return self.wait_response(STREAM_TIMEOUT_MS) == 1

    # SIM card functions

    def sim_unlock(self, pin: str) -> bool:
        self.send_at('+CPIN="', pin, '"')
        return self.wait_response(STREAM_TIMEOUT_MS) == 1

    def get_sim_ccid(self) -> str:
        self.send_at("+CCID")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+CCID:") != 1:
            return ""
        res = self._read_until("\n")
        self.wait_response(STREAM_TIMEOUT_MS)
        return res.strip()

    def get_imei(self) -> str:
        self.send_at("+GSN")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL) != 1:
            return ""
        res = self._read_until("\n")
        self.wait_response(STREAM_TIMEOUT_MS)
        return res.strip()

    def get_sim_status(self, timeout: int = 10000) -> SimStatus:
        start = time.monotonic()
        while _elapsed_ms(start) < timeout:
            self.send_at("+CPIN?")
            if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+CPIN:") != 1:
                _sleep_ms(1000)
                continue
            status = self.wait_response(
                STREAM_TIMEOUT_MS, "READY", "SIM PIN", "SIM PUK"
            )
            self.wait_response(STREAM_TIMEOUT_MS)
            if status in (2, 3):
                return SimStatus.LOCKED
            if status == 1:
                return SimStatus.READY
            return SimStatus.ERROR
        return SimStatus.ERROR

    def get_registration_status(self) -> RegStatus:
        """Network registration state; values the modem invents map to UNKNOWN."""
        self.send_at("+CREG?")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+CREG:") != 1:
            return RegStatus.UNKNOWN
        self.stream_skip_until(",")
        status = _to_int(self._read_until("\n"))
        self.wait_response(STREAM_TIMEOUT_MS)
        try:
            return RegStatus(status)
        except ValueError:
            return RegStatus.UNKNOWN

    def get_operator(self) -> str:
        self.send_at("+COPS?")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+COPS:") != 1:
            return ""
        self.stream_skip_until('"')
        res = self._read_until('"')
        self.wait_response(STREAM_TIMEOUT_MS)
        return res

    # Generic network functions

    def get_signal_quality(self) -> int:
        self.send_at("+CSQ")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+CSQ:") != 1:
            return 99
        res = _to_int(self._read_until(","))
        self.wait_response(STREAM_TIMEOUT_MS)
        return res

    def is_network_connected(self) -> bool:
        return self.get_registration_status() in (
            RegStatus.OK_HOME,
            RegStatus.OK_ROAMING,
        )

    def wait_for_network(self, timeout: int = 60000) -> bool:
        start = time.monotonic()
        while _elapsed_ms(start) < timeout:
            if self.is_network_connected():
                return True
            _sleep_ms(250)
        return False

    # GPRS functions

    def gprs_connect(
        self, apn: str, user: Optional[str] = None, pwd: Optional[str] = None
    ) -> bool:
        self.gprs_disconnect()

        self.send_at("+XISP=0")
        self.wait_response(STREAM_TIMEOUT_MS)

        self.send_at('+CGDCONT=1,"IP","', apn, '"')
        self.wait_response(STREAM_TIMEOUT_MS)

        self.send_at('+XGAUTH=1,1,"', user or "", '","', pwd or "", '"')
        self.wait_response(STREAM_TIMEOUT_MS)

        self.send_at("+XIIC=1")
        self.wait_response(STREAM_TIMEOUT_MS)

        start = time.monotonic()
        while _elapsed_ms(start) < 60000:
            if self.is_gprs_connected():
                return True
            _sleep_ms(500)
        return False

    def gprs_disconnect(self) -> bool:
        # The command set has no way to drop the link; XIIC=0 does not work.
        return True

    def is_gprs_connected(self) -> bool:
        self.send_at("+XIIC?")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+XIIC:") != 1:
            return False
        res = _to_int(self._read_until(","))
        self.wait_response(STREAM_TIMEOUT_MS)
        return res == 1

    def get_local_ip(self) -> str:
        self.send_at("+XIIC?")
        if self.wait_response(STREAM_TIMEOUT_MS, GSM_NL + "+XIIC:") != 1:
            return ""
        self._read_until(",")
        res = self._read_until("\n")
        self.wait_response(STREAM_TIMEOUT_MS)
        return res.strip()

    def local_ip(self) -> IPv4Address:
        return ip_from_string(self.get_local_ip())

    # Messaging functions

    def send_ussd(self, code: str) -> str:
        self.send_at("+CMGF=1")
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at('+CSCS="HEX"')
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at("D", code)
        if self.wait_response(10000, GSM_NL + "+CUSD:") != 1:
            return ""
        self._read_until('"')
        hex_text = self._read_until('"')
        self._read_until(",")
        dcs = _to_int(self._read_until("\n"))
        if self.wait_response(STREAM_TIMEOUT_MS) != 1:
            return ""
        if dcs == 15:
            return decode_hex_8bit(hex_text)
        if dcs == 72:
            return decode_hex_16bit(hex_text)
        return hex_text

    def send_sms(self, number: str, text: str) -> bool:
        self.send_at('+CSCS="GSM"')
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at("+CMGF=1")
        self.wait_response(STREAM_TIMEOUT_MS)
        self.send_at('+CMGS="', number, '"')
        if self.wait_response(STREAM_TIMEOUT_MS, ">") != 1:
            return False
        self.stream.write(text.encode("utf-8"))
        self.stream.write(b"\x1a")
        self.stream.flush()
        return self.wait_response(60000) == 1

    # Socket support

    def _modem_connect(self, host: str, port: int, mux: int) -> bool:
        for _ in range(3):
            ip = self._dns_ip_query(host)
            self.send_at("+TCPSETUP=", mux, ",", ip, ",", port)
            rsp = self.wait_response(
                75000,
                ",OK" + GSM_NL,
                ",FAIL" + GSM_NL,
                "+TCPSETUP:Error" + GSM_NL,
            )
            if rsp == 1:
                return True
            if rsp == 3:
                self.send_at("+TCPCLOSE=", mux)
                self.wait_response(STREAM_TIMEOUT_MS)
            _sleep_ms(1000)
        return False

    def _modem_send(self, data: bytes, mux: int) -> int:
        self.send_at("+TCPSEND=", mux, ",", len(data))
        if self.wait_response(STREAM_TIMEOUT_MS, ">") != 1:
            return 0
        self.stream.write(data)
        self.stream.write(b"\r")
        self.stream.flush()
        if self.wait_response(30000, GSM_NL + "+TCPSEND:") != 1:
            return 0
        self._read_until("\n")
        return len(data)

    def _modem_get_connected(self, mux: int) -> bool:
        self.send_at("+CIPSTATUS=", mux)
        res = self.wait_response(
            STREAM_TIMEOUT_MS,
            ',"CONNECTED"',
            ',"CLOSED"',
            ',"CLOSING"',
            ',"INITIAL"',
        )
        self.wait_response(STREAM_TIMEOUT_MS)
        return res == 1

    def _dns_ip_query(self, host: str) -> str:
        self.send_at('+DNS="', host, '"')
        if self.wait_response(10000, GSM_NL + "+DNS:") != 1:
            return ""
        res = self._read_until("\n")
        self.wait_response(STREAM_TIMEOUT_MS, "+DNS:OK" + GSM_NL)
        return res.strip()

    def _socket(self, mux: int) -> Optional[GsmClient]:
        return self._sockets[mux] if 0 <= mux < MUX_COUNT else None

    # Stream utilities

    def _timed_read(self, timeout: int = STREAM_TIMEOUT_MS) -> int:
        start = time.monotonic()
        while True:
            if self.stream.available() > 0:
                byte = self.stream.read()
                if byte >= 0:
                    return byte
            if _elapsed_ms(start) >= timeout:
                return -1
            _yield()

    def _read_until(self, terminator: str) -> str:
        chars = []
        while True:
            byte = self._timed_read()
            if byte < 0:
                break
            char = chr(byte)
            if char == terminator:
                break
            chars.append(char)
        return "".join(chars)

    def stream_skip_until(self, char: str) -> bool:
        """Discard input up to and including ``char``; False after 1 s."""
        start = time.monotonic()
        while _elapsed_ms(start) < STREAM_TIMEOUT_MS:
            while _elapsed_ms(start) < STREAM_TIMEOUT_MS and not self.stream.available():
                _yield()
            byte = self.stream.read()
            if byte >= 0 and chr(byte) == char:
                return True
        return False

    def send_at(self, *args: object) -> None:
        """Write ``AT`` followed by the arguments and a line break."""
        line = "AT" + "".join(_format(arg) for arg in args) + GSM_NL
        self.stream.write(line.encode("utf-8"))
        self.stream.flush()

    def wait_response(self, timeout: int = STREAM_TIMEOUT_MS, *responses: Optional[str]) -> int:
        """Wait for one of up to five replies; return its 1-based index, 0 on timeout.

        With no replies given, OK and ERROR are awaited; with one, ERROR is
        the second. ``None`` entries never match.
        """
        return self._wait_response_data(timeout, *responses)[0]

    @staticmethod
    def _targets(responses: Tuple[Optional[str], ...]) -> Tuple[Optional[str], ...]:
        if not responses:
            return (GSM_OK, GSM_ERROR)
        if len(responses) == 1:
            return (responses[0], GSM_ERROR)
        if len(responses) > 5:
            raise ValueError("at most five responses can be awaited")
        return tuple(responses)

    def _wait_response_data(
        self, timeout: int, *responses: Optional[str]
    ) -> Tuple[int, str]:
        targets = self._targets(responses)
        data = ""
        start = time.monotonic()
        while True:
            while self.stream.available() > 0:
                byte = self.stream.read()
                if byte <= 0:
                    continue
                data += chr(byte)
                for index, target in enumerate(targets, 1):
                    if target is not None and data.endswith(target):
                        return index, data
                if data.endswith("+TCPRECV:"):
                    self._handle_receive()
                    data = ""
                elif data.endswith("+TCPCLOSE:"):
                    self._handle_close()
                    data = ""
            if _elapsed_ms(start) >= timeout:
                break
            _yield()
        data = data.strip()
        if data:
            log.debug("### Unhandled: %s", data)
        return 0, ""

    def _handle_receive(self) -> None:
        mux = _to_int(self._read_until(","))
        length = _to_int(self._read_until(","))
        sock = self._socket(mux)
        if sock is not None and length > sock._rx.free():
            log.debug("### Buffer overflow: %d -> %d", length, sock._rx.free())
        for _ in range(length):
            byte = self._timed_read()
            if byte < 0:
                log.debug("### Fewer characters received than expected")
                break
            if sock is not None:
                try:
                    sock._rx.put(byte)
                except FifoFull:
                    pass

    def _handle_close(self) -> None:
        mux = _to_int(self._read_until(","))
        self._read_until("\n")
        sock = self._socket(mux)
        if sock is not None:
            sock._connected = False
        log.debug("### Closed: %d", mux)