"""Polling timer scheduler with a fixed number of slots."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, List, Optional, Tuple

MAX_TIMERS = 16
RUN_FOREVER = 0
RUN_ONCE = 1

_WRAP = 1 << 32


class TimersExhausted(RuntimeError):
    """Raised when every timer slot is already in use."""


class _Deferred(IntEnum):
    DONT_RUN = 0
    RUN_ONLY = 1
    RUN_AND_DELETE = 2


@dataclass
class _Slot:
    prev_millis: int = 0
    callback: Optional[Callable[..., Any]] = None
    args: Tuple[Any, ...] = field(default_factory=tuple)
    delay: int = 0
    max_runs: int = 0
    runs: int = 0
    enabled: bool = False
    to_be_called: _Deferred = _Deferred.DONT_RUN


def _monotonic_millis() -> int:
    return int(time.monotonic() * 1000)


class Timer:
    """Calls functions after a delay, periodically or a set number of times.

    ``clock`` returns the current time in milliseconds; time differences
    are taken modulo 2**32, so a wrapping counter is handled correctly.
    Timers only fire when :meth:`run` is called.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock if clock is not None else _monotonic_millis
        self._slots: List[_Slot] = [_Slot() for _ in range(MAX_TIMERS)]
        self._count: Optional[int] = None

    def _elapsed(self) -> int:
        return self._clock() % _WRAP

    @staticmethod
    def _valid(timer_id: int) -> bool:
        return 0 <= timer_id < MAX_TIMERS

    def init(self) -> None:
        """Clear every slot and start counting from now."""
        now = self._elapsed()
        self._slots = [_Slot(prev_millis=now) for _ in range(MAX_TIMERS)]
        self._count = 0

    def run(self) -> None:
        """Call every timer whose delay has passed; call this often."""
        now = self._elapsed()
        for slot in self._slots:
            slot.to_be_called = _Deferred.DONT_RUN
            if slot.callback is None:
                continue
            passed = (now - slot.prev_millis) % _WRAP
            if passed < slot.delay:
                continue
            if slot.delay:
                skip = passed // slot.delay
                slot.prev_millis = (slot.prev_millis + slot.delay * skip) % _WRAP
            if not slot.enabled:
                continue
            if slot.max_runs == RUN_FOREVER:
                slot.to_be_called = _Deferred.RUN_ONLY
            elif slot.runs < slot.max_runs:
                slot.runs += 1
                slot.to_be_called = (
                    _Deferred.RUN_AND_DELETE
                    if slot.runs >= slot.max_runs
                    else _Deferred.RUN_ONLY
                )

        for timer_id in range(MAX_TIMERS):
            slot = self._slots[timer_id]
            action = slot.to_be_called
            if action == _Deferred.DONT_RUN or slot.callback is None:
                continue
            slot.callback(*slot.args)
            if action == _Deferred.RUN_AND_DELETE:
                self.delete_timer(timer_id)

    def _find_free_slot(self) -> Optional[int]:
        if self._count is not None and self._count >= MAX_TIMERS:
            return None
        return next(
            (i for i, slot in enumerate(self._slots) if slot.callback is None),
            None,
        )

    def _setup(self, delay: int, callback, args: Tuple[Any, ...], runs: int) -> int:
        if self._count is None:
            self.init()
        timer_id = self._find_free_slot()
        if timer_id is None:
            raise TimersExhausted("no free timer slots")
        if callback is None:
            raise ValueError("callback must not be None")
        if runs < 0:
            raise ValueError("runs must not be negative")
        self._slots[timer_id] = _Slot(
            prev_millis=self._elapsed(),
            callback=callback,
            args=tuple(args),
            delay=delay,
            max_runs=runs,
            enabled=True,
        )
        self._count += 1
        return timer_id

    def set_interval(self, delay: int, callback: Callable[..., Any], *args: Any) -> int:
        """Call ``callback(*args)`` every ``delay`` ms forever; return its id."""
        return self._setup(delay, callback, args, RUN_FOREVER)

    def set_timeout(self, delay: int, callback: Callable[..., Any], *args: Any) -> int:
        """Call ``callback(*args)`` once after ``delay`` ms; return its id."""
        return self._setup(delay, callback, args, RUN_ONCE)

    def set_timer(
        self, delay: int, callback: Callable[..., Any], runs: int, *args: Any
    ) -> int:
        """Call ``callback(*args)`` every ``delay`` ms, ``runs`` times; return its id."""
        return self._setup(delay, callback, args, runs)

    def change_interval(self, timer_id: int, delay: int) -> bool:
        """Set a new delay for a timer in use and restart it; False if unused."""
        if not self._valid(timer_id):
            return False
        slot = self._slots[timer_id]
        if slot.callback is None:
            return False
        slot.delay = delay
        slot.prev_millis = self._elapsed()
        return True

    def delete_timer(self, timer_id: int) -> None:
        """Free a timer slot; unknown or empty slots are ignored."""
        if not self._valid(timer_id) or not self._count:
            return
        if self._slots[timer_id].callback is not None:
            self._slots[timer_id] = _Slot(prev_millis=self._elapsed())
            self._count -= 1

    def restart_timer(self, timer_id: int) -> None:
        """Start counting a timer's delay again from now."""
        if self._valid(timer_id):
            self._slots[timer_id].prev_millis = self._elapsed()

    def is_enabled(self, timer_id: int) -> bool:
        """True if the timer is enabled."""
        return self._valid(timer_id) and self._slots[timer_id].enabled

    def enable(self, timer_id: int) -> None:
        """Enable a timer."""
        if self._valid(timer_id):
            self._slots[timer_id].enabled = True

    def disable(self, timer_id: int) -> None:
        """Disable a timer; it keeps its slot but is not called."""
        if self._valid(timer_id):
            self._slots[timer_id].enabled = False

    def _set_all(self, enabled: bool) -> None:
        # Only slots in use that have not yet counted a run are affected.
        for slot in self._slots:
            if slot.callback is not None and slot.runs == RUN_FOREVER:
                slot.enabled = enabled

    def enable_all(self) -> None:
        """Enable every used timer that has not counted any run."""
        self._set_all(True)

    def disable_all(self) -> None:
        """Disable every used timer that has not counted any run."""
        self._set_all(False)

    def toggle(self, timer_id: int) -> None:
        """Flip a timer between enabled and disabled."""
        if self._valid(timer_id):
            slot = self._slots[timer_id]
            slot.enabled = not slot.enabled

    def num_timers(self) -> int:
        """Number of slots in use."""
        return self._count or 0

    def num_available_timers(self) -> int:
        """Number of free slots."""
        return MAX_TIMERS - self.num_timers()