from ipaddress import IPv4Address

import pytest

from blynkcore.m590 import GsmClient, ModemM590, RegStatus, SimStatus


class FakeStream:
    """Replies to each flushed chunk from a table; lists are consumed in order."""

    def __init__(self, replies=None):
        self.replies = dict(replies or {})
        self.rx = bytearray()
        self.pending = bytearray()
        self.chunks = []

    def write(self, data):
        self.pending += data
        return len(data)

    def flush(self):
        chunk = self.pending.decode("latin-1")
        self.pending.clear()
        if not chunk:
            return
        self.chunks.append(chunk)
        reply = self.replies.get(chunk)
        if isinstance(reply, list):
            reply = reply.pop(0) if reply else None
        if reply:
            self.rx += reply.encode("latin-1")

    def available(self):
        return len(self.rx)

    def read(self):
        if not self.rx:
            return -1
        return self.rx.pop(0)

    def feed(self, text):
        self.rx += text.encode("latin-1")


def make(replies=None):
    stream = FakeStream(replies)
    return stream, ModemM590(stream)


def connected_client():
    stream, modem = make({
        "AT+TCPCLOSE=1\r\n": "OK\r\n",
        'AT+DNS="example.com"\r\n': "\r\n+DNS:10.0.0.1\r\n+DNS:OK\r\n",
        "AT+TCPSETUP=1,10.0.0.1,80\r\n": "\r\n+TCPSETUP:1,OK\r\n",
        "AT+TCPSEND=1,5\r\n": ">",
        "hello\r": "\r\n+TCPSEND:1,5\r\n",
    })
    client = GsmClient(modem, 1)
    assert client.connect("example.com", 80) is True
    return stream, modem, client


def test_send_at_wire_format():
    stream, modem = make()
    modem.send_at("+CSQ")
    assert stream.chunks == ["AT+CSQ\r\n"]


def test_wait_response_default_error_index():
    stream, modem = make()
    stream.feed("foo\r\nERROR\r\n")
    assert modem.wait_response(100) == 2


def test_wait_response_custom_targets():
    stream, modem = make()
    stream.feed("\r\n+CPIN: SIM PUK\r\n")
    assert modem.wait_response(100, "READY", "SIM PIN", "SIM PUK") == 3


def test_wait_response_timeout_returns_zero():
    stream, modem = make()
    stream.feed("garbage")
    assert modem.wait_response(20) == 0


def test_maintain_matches_nothing():
    stream, modem = make()
    stream.feed("OK\r\n")
    assert modem.wait_response(10, None, None) == 0


def test_signal_quality():
    _, modem = make({"AT+CSQ\r\n": "\r\n+CSQ: 23,0\r\n\r\nOK\r\n"})
    assert modem.get_signal_quality() == 23


def test_signal_quality_failure_is_99():
    _, modem = make({"AT+CSQ\r\n": "ERROR\r\n"})
    assert modem.get_signal_quality() == 99


def test_registration_roaming():
    stream, modem = make({"AT+CREG?\r\n": "\r\n+CREG: 0,5\r\n\r\nOK\r\n"})
    assert modem.get_registration_status() is RegStatus.OK_ROAMING
    assert modem.is_network_connected() is True


def test_registration_denied_not_connected():
    _, modem = make({"AT+CREG?\r\n": "\r\n+CREG: 0,2\r\n\r\nOK\r\n"})
    assert modem.is_network_connected() is False


def test_operator():
    _, modem = make({"AT+COPS?\r\n": '\r\n+COPS: 0,0,"Example Net"\r\n\r\nOK\r\n'})
    assert modem.get_operator() == "Example Net"


def test_modem_info():
    _, modem = make({"ATI\r\n": "\r\nM590\r\n\r\nOK\r\n"})
    assert modem.get_modem_info() == "M590"


def test_imei():
    _, modem = make({"AT+GSN\r\n": "\r\nTESTIMEI01\r\n\r\nOK\r\n"})
    assert modem.get_imei() == "TESTIMEI01"


@pytest.mark.parametrize(
    "reply, expected",
    [
        ("\r\n+CPIN: READY\r\n\r\nOK\r\n", SimStatus.READY),
        ("\r\n+CPIN: SIM PIN\r\n\r\nOK\r\n", SimStatus.LOCKED),
        ("\r\n+CPIN: SIM PUK\r\n\r\nOK\r\n", SimStatus.LOCKED),
    ],
)
def test_sim_status(reply, expected):
    _, modem = make({"AT+CPIN?\r\n": reply})
    assert modem.get_sim_status() is expected


def test_gprs_state_and_local_ip():
    reply = "\r\n+XIIC:    1, 10.0.0.5\r\n\r\nOK\r\n"
    _, modem = make({"AT+XIIC?\r\n": reply})
    assert modem.is_gprs_connected() is True
    assert modem.get_local_ip() == "10.0.0.5"
    assert modem.local_ip() == IPv4Address("10.0.0.5")


def test_sleep_enable_sends_integer_flag():
    stream, modem = make({"AT+ENPWRSAVE=0\r\n": "OK\r\n"})
    assert modem.sleep_enable(False) is True
    assert stream.chunks == ["AT+ENPWRSAVE=0\r\n"]


def test_ussd_8bit():
    _, modem = make({
        "AT+CMGF=1\r\n": "OK\r\n",
        'AT+CSCS="HEX"\r\n': "OK\r\n",
        "ATD*100#\r\n": '\r\n+CUSD: 0,"48656C6C6F",15\r\n\r\nOK\r\n',
    })
    assert modem.send_ussd("*100#") == "Hello"


def test_ussd_other_dcs_returns_hex():
    _, modem = make({
        "AT+CMGF=1\r\n": "OK\r\n",
        'AT+CSCS="HEX"\r\n': "OK\r\n",
        "ATD*100#\r\n": '\r\n+CUSD: 0,"ABCD",1\r\n\r\nOK\r\n',
    })
    assert modem.send_ussd("*100#") == "ABCD"


def test_send_sms():
    stream, modem = make({
        'AT+CSCS="GSM"\r\n': "OK\r\n",
        "AT+CMGF=1\r\n": "OK\r\n",
        'AT+CMGS="100"\r\n': "> ",
        "hello\x1a": "\r\n+CMGS: 1\r\n\r\nOK\r\n",
    })
    assert modem.send_sms("100", "hello") is True
    assert "hello\x1a" in stream.chunks


def test_gprs_connect_commands():
    stream, modem = make({
        "AT+XISP=0\r\n": "OK\r\n",
        'AT+CGDCONT=1,"IP","internet"\r\n': "OK\r\n",
        'AT+XGAUTH=1,1,"",""\r\n': "OK\r\n",
        "AT+XIIC=1\r\n": "OK\r\n",
        "AT+XIIC?\r\n": "\r\n+XIIC:    1, 10.0.0.5\r\n\r\nOK\r\n",
    })
    assert modem.gprs_connect("internet") is True
    assert 'AT+CGDCONT=1,"IP","internet"\r\n' in stream.chunks
    assert 'AT+XGAUTH=1,1,"",""\r\n' in stream.chunks


def test_init_succeeds():
    stream, modem = make({
        "AT\r\n": "OK\r\n",
        "AT&FZE0\r\n": "OK\r\n",
        "AT+CPIN?\r\n": "\r\n+CPIN: READY\r\n\r\nOK\r\n",
    })
    assert modem.begin() is True
    assert stream.chunks[:2] == ["AT\r\n", "AT&FZE0\r\n"]


def test_test_at_without_answer():
    _, modem = make()
    assert modem.test_at(50) is False


def test_stream_skip_until():
    stream, modem = make()
    stream.feed("xyz,rest")
    assert modem.stream_skip_until(",") is True
    assert bytes(stream.rx) == b"rest"


def test_client_invalid_mux():
    _, modem = make()
    with pytest.raises(ValueError):
        GsmClient(modem, 5)


def test_client_connect_commands():
    stream, _, client = connected_client()
    assert client.connected() is True
    assert "AT+TCPSETUP=1,10.0.0.1,80\r\n" in stream.chunks


def test_client_write():
    stream, _, client = connected_client()
    assert client.write(b"hello") == 5
    assert "hello\r" in stream.chunks


def test_client_write_without_prompt():
    stream, _, client = connected_client()
    stream.replies["AT+TCPSEND=1,3\r\n"] = "ERROR\r\n"
    assert client.write("abc") == 0


def test_client_receive_and_close():
    stream, _, client = connected_client()
    stream.feed("\r\n+TCPRECV:1,5,world\r\n")
    assert client.available() == 5
    assert client.read(5) == b"world"
    stream.feed("\r\n+TCPCLOSE:1,Link Closed\r\n")
    assert client.available() == 0
    assert client.connected() is False
    assert client.read(3) == b""


def test_unsolicited_data_during_other_wait():
    stream, modem = make()
    client = GsmClient(modem, 0)
    stream.feed("+TCPRECV:0,3,abcOK\r\n")
    assert modem.wait_response(100) == 1
    assert client.read(3) == b"abc"