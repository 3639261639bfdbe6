"""
Status subscription for a submitted transaction.
"""
import logging
import queue
import threading
import time
from typing import Iterator

from .models import StatusEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 64


class StatusSubscription:
    """
    Bounded queue of status events fed by a submission callback.

    ``push`` is handed to the chain client as the status callback. The
    consumer iterates ``events(timeout)``, which stops after a terminal
    event or raises ``TimeoutError`` once the deadline passes.
    A subscription is single-use: a new submission needs a new instance.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        self._queue: "queue.Queue[StatusEvent]" = queue.Queue(maxsize=max_events)
        self._cancelled = threading.Event()
        self._closed = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop accepting events. The underlying submission is not affected."""
        self._cancelled.set()

    def push(self, event: StatusEvent) -> None:
        if self._cancelled.is_set():
            logger.debug(f"Dropping status event after cancel: {event.kind.value}")
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(f"Status queue full, dropping event: {event.kind.value}")

    def events(self, timeout: float) -> Iterator[StatusEvent]:
        """
        Yield events until a terminal one or until ``timeout`` seconds pass.

        Raises:
            TimeoutError: If no terminal event arrived in time
            RuntimeError: If the subscription was already consumed
        """
        if self._closed:
            raise RuntimeError("Status subscription already consumed; resubmit to watch again")
        self._closed = True

        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.cancel()
                raise TimeoutError(f"No terminal status after {timeout}s")
            try:
                event = self._queue.get(timeout=remaining)
            except queue.Empty:
                continue
            yield event
            if event.is_terminal:
                self.cancel()
                return

