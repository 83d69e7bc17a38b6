"""
Concurrency Helpers

Cancellation token and the result-delivery dispatcher that owns all
mutable session state.
"""

import queue
import threading
from typing import Any, Callable
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared by a session's workers."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; returns True if cancelled."""
        return self._event.wait(timeout)


class Dispatcher:
    """
    Queue of callbacks executed on the thread that drains it.

    Worker threads post() results; the owning thread calls
    process_pending() so that state touched by callbacks is only ever
    mutated from one thread.
    """

    def __init__(self):
        self._queue: "queue.Queue" = queue.Queue()

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.put((callback, args))

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    def process_pending(self, timeout: float = 0.0) -> int:
        """
        Run queued callbacks.

        Args:
            timeout: Seconds to wait for the first callback when the
                queue is empty

        Returns:
            Number of callbacks run
        """
        processed = 0
        try:
            item = self._queue.get(timeout=timeout) if timeout > 0 else self._queue.get_nowait()
        except queue.Empty:
            return 0

        while True:
            callback, args = item
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Dispatcher callback {callback!r} failed")
            processed += 1

            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return processed
