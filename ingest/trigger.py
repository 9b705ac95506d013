"""Cancellable waits for marker lines in the session buffer."""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

from ingest.session_buffer import SessionBuffer
from services.errors import WaitCancelled

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1


class TriggerDetector:
    """Block until a marker substring shows up in a :class:`SessionBuffer`.

    Appends wake the waiter through the buffer's condition variable; the
    poll interval only bounds how long a wake-up can be missed and how long
    a cancellation can go unnoticed.
    """

    def __init__(self, buffer: SessionBuffer, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        self.buffer = buffer
        self.poll_interval = poll_interval
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Abort every wait in progress, and any started later."""
        self._cancelled.set()
        self.buffer.notify_waiters()

    def wait(
        self,
        marker: str,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> bool:
        """Return True once ``marker`` is in the buffer, False on timeout.

        Raises :class:`WaitCancelled` when the detector or ``cancel_event``
        is cancelled before the marker arrives.
        """
        if not marker:
            raise ValueError("marker must be a non-empty string.")

        deadline = None if timeout is None else time.monotonic() + timeout

        def is_cancelled() -> bool:
            return self._cancelled.is_set() or (cancel_event is not None and cancel_event.is_set())

        def ready(lines: List[str]) -> bool:
            return is_cancelled() or any(marker in line for line in lines)

        logger.debug("Waiting for marker", extra={"marker": marker})
        while True:
            if is_cancelled():
                raise WaitCancelled(f"Wait for {marker!r} was cancelled.")

            interval = self.poll_interval
            if deadline is not None:
                interval = max(0.0, min(interval, deadline - time.monotonic()))

            if self.buffer.wait_until(ready, interval):
                if is_cancelled():
                    raise WaitCancelled(f"Wait for {marker!r} was cancelled.")
                logger.debug("Marker found", extra={"marker": marker})
                return True

            if deadline is not None and time.monotonic() >= deadline:
                logger.debug("Timed out waiting for marker", extra={"marker": marker})
                return False
