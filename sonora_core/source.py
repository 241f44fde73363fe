"""
Classification Stream
=====================

Bounded Context: Event intake

Closable in-process channel between classifier producers and the
aggregation controller.

Design:
- Thread-safe FIFO (queue.Queue), unbounded
- Any number of producers call publish(); one consumer drains it
- End of stream is explicit: close() + drain raises StreamClosed,
  so consumers never infer termination from silence
- Accept gate: while paused, publish() refuses events, so nothing piles
  up between sessions (the controller pauses the stream when idle)

Message Flow:
    Classifier callback / MQTT subscriber / replay → publish() → queue
    → AggregationController consumer thread → get()
"""

import queue
import threading
from typing import Iterator, Optional

from sonora_core.schemas import ClassificationEvent

_END = object()


class StreamClosed(Exception):
    """Raised by get() once the stream is closed and fully drained."""
    pass


class ClassificationStream:
    """
    Closable queue of ClassificationEvent values.

    Example:
        >>> stream = ClassificationStream()
        >>> stream.publish(ClassificationEvent("dog", 0.9))
        True
        >>> stream.close()
        >>> [e.label for e in stream]
        ['dog']
    """

    def __init__(self):
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._drained = False
        self._accepting = True

    def publish(self, event: ClassificationEvent) -> bool:
        """
        Enqueue an event.

        Returns:
            False if the stream is closed or paused (event discarded)
        """
        with self._lock:
            if self._closed or not self._accepting:
                return False
            self._queue.put(event)
            return True

    def close(self) -> None:
        """Signal end of stream. Already queued events are still delivered."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_END)

    def pause(self) -> None:
        """Refuse new events until resume(). Queued events are kept."""
        with self._lock:
            self._accepting = False

    def resume(self) -> None:
        with self._lock:
            self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def drained(self) -> bool:
        """True once the consumer has observed end of stream."""
        return self._drained

    def get(self, timeout: Optional[float] = None) -> Optional[ClassificationEvent]:
        """
        Take the next event.

        Args:
            timeout: Seconds to wait; None blocks until an event or end of stream

        Returns:
            The next event, or None if the timeout expired

        Raises:
            StreamClosed: Stream closed and no events left
        """
        if self._drained:
            raise StreamClosed()

        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _END:
            self._drained = True
            raise StreamClosed()
        return item

    def discard_pending(self) -> int:
        """
        Drop queued events without consuming end of stream.

        Returns:
            Number of events discarded
        """
        discarded = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return discarded
            if item is _END:
                # close() forbids later publishes, so the marker is last
                self._queue.put(_END)
                return discarded
            discarded += 1

    def __iter__(self) -> Iterator[ClassificationEvent]:
        while True:
            try:
                event = self.get()
            except StreamClosed:
                return
            if event is not None:
                yield event

    def qsize(self) -> int:
        """Approximate number of pending events."""
        return self._queue.qsize()
