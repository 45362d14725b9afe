"""Bounded, closable stream between a producer thread and a consumer.

put() blocks while the queue is full, so a slow consumer throttles the
producer. close() enqueues an end marker; iteration stops when it is
reached. A cancel event unblocks a waiting producer or consumer.
"""

import queue
import threading
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")

DEFAULT_CAPACITY = 100

_POLL_SECONDS = 0.1


class _Closed:
    pass


_CLOSED = _Closed()


class Channel(Generic[T]):
    """FIFO of items followed by a single end marker."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, cancel: threading.Event | None = None) -> None:
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._cancel = cancel or threading.Event()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, item: T) -> bool:
        """Enqueue item, waiting for room. Returns False if cancelled or
        closed."""
        if self._closed:
            return False
        return self._put(item)

    def close(self) -> None:
        """Mark end of stream. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._put(_CLOSED)

    def _put(self, item: object) -> bool:
        while not self._cancel.is_set():
            try:
                self._queue.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        # Cancelled: the end marker must still get through if there is room
        if item is _CLOSED:
            try:
                self._queue.put_nowait(item)
            except queue.Full:
                pass
        return False

    def get(self, timeout: float | None = None) -> T | None:
        """Next item, or None at end of stream / on timeout."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                item = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                if self._cancel.is_set():
                    return
                continue
            if item is _CLOSED:
                return
            yield item
