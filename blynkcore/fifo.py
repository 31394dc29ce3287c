"""Bounded first-in first-out queue with ring-buffer capacity semantics."""

from __future__ import annotations

from collections import deque
from itertools import islice
from typing import Deque, Generic, Iterable, List, TypeVar

T = TypeVar("T")


class FifoFull(OverflowError):
    """Raised when an item is put into a queue that has no free space."""


class FifoEmpty(LookupError):
    """Raised when an item is taken from a queue that holds nothing."""


class Fifo(Generic[T]):
    """A bounded queue that holds at most ``capacity - 1`` items.

    One slot of the capacity is always kept free, as in a classic ring
    buffer where equal read and write positions mean "empty".
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: Deque[T] = deque()

    @property
    def capacity(self) -> int:
        """The size of the underlying ring, one more than the items it holds."""
        return self._capacity

    def clear(self) -> None:
        """Drop every queued item."""
        self._items.clear()

    def writeable(self) -> bool:
        """True if at least one more item fits."""
        return self.free() > 0

    def free(self) -> int:
        """Number of items that can still be put."""
        return self._capacity - 1 - len(self._items)

    def put(self, item: T) -> T:
        """Append one item and return it; raise FifoFull if there is no room."""
        if not self.writeable():
            raise FifoFull("fifo is full")
        self._items.append(item)
        return item

    def put_many(self, items: Iterable[T]) -> int:
        """Append as many items as fit and return how many were stored."""
        before = len(self._items)
        self._items.extend(islice(items, self.free()))
        return len(self._items) - before

    def readable(self) -> bool:
        """True if at least one item is queued."""
        return bool(self._items)

    def size(self) -> int:
        """Number of queued items."""
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self) -> T:
        """Remove and return the oldest item; raise FifoEmpty if none."""
        if not self._items:
            raise FifoEmpty("fifo is empty")
        return self._items.popleft()

    def peek(self) -> T:
        """Return the oldest item without removing it; raise FifoEmpty if none."""
        if not self._items:
            raise FifoEmpty("fifo is empty")
        return self._items[0]

    def get_many(self, count: int) -> List[T]:
        """Remove and return up to ``count`` of the oldest items."""
        taken = min(max(count, 0), len(self._items))
        return [self._items.popleft() for _ in range(taken)]