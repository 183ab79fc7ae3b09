"""Fixed-capacity history buffer that discards the oldest entry when full.

Controllers keep performance and sensor histories for the lifetime of the
instance. The buffer preallocates its storage so appending never grows
memory, and iteration always yields entries from oldest to newest.
"""

from __future__ import annotations

from typing import Generic, Iterator, List, Optional, TypeVar

import numpy as np


T = TypeVar("T")


DEFAULT_HISTORY_CAPACITY = 1000


class RingBuffer(Generic[T]):
    """Circular buffer with drop-oldest eviction."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("RingBuffer requires a positive capacity")
        self._capacity = int(capacity)
        self._items: list[Optional[T]] = [None] * self._capacity
        self._start = 0
        self._size = 0
        self._dropped = 0

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:  # pragma: no cover - delegating to __len__
        return self._size > 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def dropped(self) -> int:
        """Number of entries evicted since the last :meth:`clear`."""

        return self._dropped

    def clear(self) -> None:
        self._items = [None] * self._capacity
        self._start = 0
        self._size = 0
        self._dropped = 0

    def append(self, item: T) -> Optional[T]:
        """Store ``item`` returning the evicted entry when the buffer was full."""

        evicted: Optional[T] = None
        if self._size == self._capacity:
            evicted = self._items[self._start]
            self._items[self._start] = item
            self._start = (self._start + 1) % self._capacity
            self._dropped += 1
            return evicted
        self._items[self._logical_index(self._size)] = item
        self._size += 1
        return evicted

    def tail(self, count: int) -> List[T]:
        """Return up to ``count`` of the most recent entries, oldest first."""

        if count <= 0:
            return []
        count = min(count, self._size)
        offset = self._size - count
        return [self._get(offset + index) for index in range(count)]

    def as_array(self, count: Optional[int] = None) -> np.ndarray:
        """Return the numeric tail of the buffer as a float array."""

        values = list(self) if count is None else self.tail(count)
        return np.asarray(values, dtype=float)

    def __iter__(self) -> Iterator[T]:
        for index in range(self._size):
            yield self._get(index)

    def _get(self, offset: int) -> T:
        item = self._items[self._logical_index(offset)]
        if item is None:  # pragma: no cover - defensive guard
            raise RuntimeError("RingBuffer stored None entry")
        return item

    def _logical_index(self, offset: int) -> int:
        return (self._start + offset) % self._capacity
