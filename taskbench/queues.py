"""Mutex-protected queues used as the baseline in the queue benchmarks."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Optional


class LockedQueue:
    """A FIFO queue taking a lock on every push and pop.

    The sub-queue size is accepted for interface parity with block-based
    queues and has no effect here.
    """

    def __init__(self, sub_queue_size: int = 0) -> None:
        self.sub_queue_size = sub_queue_size
        self._lock = threading.Lock()
        self._items: deque[Any] = deque()

    def push(self, value: Any) -> bool:
        """Append ``value``; return True if the queue was empty before."""
        with self._lock:
            was_empty = not self._items
            self._items.append(value)
        return was_empty

    def pop(self) -> Optional[Any]:
        """Remove and return the oldest item, or None when empty."""
        with self._lock:
            return self._items.popleft() if self._items else None

    def reserve(self, count: int) -> None:
        """Pre-allocation hint; nothing to do for this queue."""

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class LockedQueueConsumer:
    """A consumer handle reading from a :class:`LockedQueue`."""

    def __init__(self, queue: Optional[LockedQueue] = None) -> None:
        self._queue = queue

    def attach(self, queue: LockedQueue) -> None:
        self._queue = queue

    def detach(self) -> None:
        self._queue = None

    def pop(self) -> Optional[Any]:
        if self._queue is None:
            raise RuntimeError("Consumer is not attached to a queue")
        return self._queue.pop()


class LockedMultiProducerQueue:
    """Many producers push, one consumer takes everything at once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: list[Any] = []

    def push(self, value: Any) -> bool:
        """Append ``value``; return True if the queue was empty before."""
        with self._lock:
            was_empty = not self._items
            self._items.append(value)
        return was_empty

    def pop_all(self) -> list[Any]:
        """Take all items in push order, leaving the queue empty."""
        with self._lock:
            items, self._items = self._items, []
        return items

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items