"""Building blocks for IoT device clients: ring buffer, software timers, virtual pin handlers, M590 modem driver and network helpers."""

__version__ = "0.5.4"