# blynkcore

Small building blocks for IoT device clients and the hardware around
them. The package uses only the standard library.

## Modules

### `blynkcore.fifo`

`Fifo(capacity)` is a bounded first-in first-out queue that follows ring-buffer
rules. One slot is always kept free, so a queue of capacity `N` holds at
most `N - 1` items.

- `put(item)` appends one item and returns it. It raises `FifoFull` when
  there is no room.
- `put_many(items)` stores as many items as fit and returns how many it
  stored.
- `get()` and `peek()` return the oldest item. They raise `FifoEmpty` when
  the queue is empty.
- `get_many(count)` removes and returns up to `count` items as a list.
- `size()` and `len()` give the number of queued items. `free()` gives the
  room that is left. `readable()` and `writeable()` answer yes or no.
  `clear()` empties the queue.

### `blynkcore.timer`

`Timer(clock=None)` schedules callbacks in up to 16 slots. `clock` returns
the current time in milliseconds and defaults to a monotonic clock.
Differences between times are taken modulo 2**32, so a clock that wraps
around is handled. Callbacks fire only when you call `run()`.

- `set_interval(delay, callback, *args)` runs the callback for ever.
  `set_timeout(delay, callback, *args)` runs it once.
  `set_timer(delay, callback, runs, *args)` runs it `runs` times. Each
  returns the timer id. They raise `TimersExhausted` when no slot is free.
- `change_interval`, `restart_timer`, `delete_timer`, `enable`, `disable`,
  `toggle` and `is_enabled` work on a single timer id.
- `enable_all()` and `disable_all()` affect the used timers that have not
  yet counted a run.
- `num_timers()` and `num_available_timers()` report how many slots are
  used and how many are free.

```python
from blynkcore.timer import Timer

timer = Timer()
timer.set_interval(1000, print, "tick")
while True:
    timer.run()
```

### `blynkcore.handlers`

`HandlerRegistry(pin_count=32)` maps virtual pins to handlers. Handlers are
registered with decorators:

```python
from blynkcore.handlers import HandlerRegistry

handlers = HandlerRegistry(32)

@handlers.on_write(5)
def set_brightness(request, param):
    print("pin", request.pin, "value", param)

handlers.dispatch_write(5, 128)
```

`on_read(pin)` and `on_write(pin)` take `pin=None` to set the default
handler. A pin that has no handler of its own uses the default handler. If
there is no default handler either, the access is only logged.
`on_connected` and `on_disconnected` register session hooks, and
`dispatch_connected()` and `dispatch_disconnected()` run them. A pin
outside `0..pin_count-1` raises `ValueError` when you register a handler
for it.

### `blynkcore.m590`

`ModemM590(stream)` drives an M590 GSM modem through AT commands. `stream`
is any object with these methods:

- `write(bytes)`
- `read()`, which returns a byte value, or a negative number when no byte
  is available
- `available()`
- `flush()`

The driver covers:

- initialisation, restart and power-off
- SIM status, CCID and IMEI
- network registration, operator and signal quality
- GPRS attach, the link state and the local IP
- USSD and SMS

`wait_response(timeout, *responses)` waits for one of up to five replies. It
returns the 1-based index of the reply that arrived, or 0 on timeout.

`GsmClient(modem, mux=1)` is one of two TCP sockets multiplexed over the
modem. It provides `connect`, `write`, `read`, `available`, `connected` and
`stop`. Incoming `+TCPRECV:` data is buffered in a `Fifo` of 256 slots.

### `blynkcore.gsm_common`

- `ip_from_string(text)` parses an IPv4 address out of a modem reply.
- `decode_hex_7bit`, `decode_hex_8bit` and `decode_hex_16bit` decode
  hex-encoded USSD payloads.
- `auto_baud(serial, minimum=9600, maximum=115200)` tries a list of baud
  rates until the modem answers `OK`. It returns 0 if no rate works.

### `blynkcore.ethernet`

- `select_mac_address(token, mac=None)` returns `mac` when one is given.
  Otherwise it derives a MAC address from the auth token by XOR-ing the
  token's bytes into a fixed base address.
- `server_port(use_ssl=False)` returns 80, or 8441 when `use_ssl` is true.
- The module also holds the default domain and protocol limits, such as
  `HEARTBEAT`, `MAX_READBYTES` and `MAX_SENDBYTES`.

### `blynkcore.ntp`

- `build_ntp_request()` builds the 48-byte request.
- `parse_ntp_response(packet)` turns a reply into Unix time.
- `ntp_get_time(server="time.nist.gov", port=123, attempts=10, timeout=1.0)`
  asks over UDP and retries. It raises `NtpError` if every attempt fails.

## What the package does not do

The package has no client that logs in to a server and exchanges protocol
messages. Such a client would have to be built on top of these pieces. The
package also has no command-line tool and no device or board drivers apart
from the M590 modem over a stream you supply.

## Testing

```
pip install .[test]
pytest
```