"""Registry of virtual-pin read/write handlers and connection callbacks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

log = logging.getLogger(__name__)

DEFAULT_PIN_COUNT = 32
EXTENDED_PIN_COUNT = 128


@dataclass(frozen=True)
class Request:
    """What a handler is told about the pin being read or written."""

    pin: int


ReadHandler = Callable[[Request], Any]
WriteHandler = Callable[[Request, Any], Any]
Callback = Callable[[], Any]


def _log_no_read_handler(request: Request) -> None:
    log.info("No handler for reading from pin %d", request.pin)


def _log_no_write_handler(request: Request, param: Any) -> None:
    log.info("No handler for writing to pin %d", request.pin)


class HandlerRegistry:
    """Maps virtual pins to user handlers.

    A pin with no handler of its own falls back to the default handler,
    registered with ``pin=None``; without one, the access is only logged.
    """

    def __init__(self, pin_count: int = DEFAULT_PIN_COUNT) -> None:
        if pin_count < 1:
            raise ValueError("pin_count must be at least 1")
        self.pin_count = pin_count
        self._read: Dict[int, ReadHandler] = {}
        self._write: Dict[int, WriteHandler] = {}
        self._default_read: ReadHandler = _log_no_read_handler
        self._default_write: WriteHandler = _log_no_write_handler
        self._connected: Optional[Callback] = None
        self._disconnected: Optional[Callback] = None

    def _check_pin(self, pin: int) -> None:
        if not 0 <= pin < self.pin_count:
            raise ValueError(f"pin must be in range 0..{self.pin_count - 1}")

    def on_read(self, pin: Optional[int]) -> Callable[[ReadHandler], ReadHandler]:
        """Decorator registering a read handler for ``pin`` (None: the default)."""
        if pin is not None:
            self._check_pin(pin)

        def register(handler: ReadHandler) -> ReadHandler:
            if pin is None:
                self._default_read = handler
            else:
                self._read[pin] = handler
            return handler

        return register

    def on_write(self, pin: Optional[int]) -> Callable[[WriteHandler], WriteHandler]:
        """Decorator registering a write handler for ``pin`` (None: the default)."""
        if pin is not None:
            self._check_pin(pin)

        def register(handler: WriteHandler) -> WriteHandler:
            if pin is None:
                self._default_write = handler
            else:
                self._write[pin] = handler
            return handler

        return register

    def on_connected(self, callback: Callback) -> Callback:
        """Register the function called when a session starts."""
        self._connected = callback
        return callback

    def on_disconnected(self, callback: Callback) -> Callback:
        """Register the function called when a session ends."""
        self._disconnected = callback
        return callback

    def read_handler(self, pin: int) -> Optional[ReadHandler]:
        """The handler registered for ``pin``, or None."""
        return self._read.get(pin)

    def write_handler(self, pin: int) -> Optional[WriteHandler]:
        """The handler registered for ``pin``, or None."""
        return self._write.get(pin)

    def dispatch_read(self, pin: int) -> Any:
        """Run the read handler for ``pin`` and return its result."""
        request = Request(pin)
        handler = self.read_handler(pin) or self._default_read
        return handler(request)

    def dispatch_write(self, pin: int, param: Any) -> Any:
        """Run the write handler for ``pin`` with ``param`` and return its result."""
        request = Request(pin)
        handler = self.write_handler(pin) or self._default_write
        return handler(request, param)

    def dispatch_connected(self) -> Any:
        """Run the connected callback, if any."""
        if self._connected is not None:
            return self._connected()
        return None

    def dispatch_disconnected(self) -> Any:
        """Run the disconnected callback, if any."""
        if self._disconnected is not None:
            return self._disconnected()
        return None