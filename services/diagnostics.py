"""Progress and problem messages for whatever presents the session."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    sequence: int
    created_at: datetime
    level: int
    message: str


class Diagnostics:
    """Bounded message log; ``emit`` never waits on a consumer.

    Consumers poll with ``snapshot(since=last_sequence)``. When the log is
    full the oldest messages are dropped.
    """

    def __init__(self, capacity: int = 500) -> None:
        self._messages: Deque[Diagnostic] = deque(maxlen=capacity)
        self._next_sequence = 1
        self._lock = threading.Lock()

    def emit(self, message: str, level: int = logging.INFO) -> Diagnostic:
        with self._lock:
            item = Diagnostic(
                sequence=self._next_sequence,
                created_at=datetime.now(timezone.utc),
                level=level,
                message=message,
            )
            self._next_sequence += 1
            self._messages.append(item)
        logger.log(level, message)
        return item

    def warning(self, message: str) -> Diagnostic:
        return self.emit(message, level=logging.WARNING)

    def error(self, message: str) -> Diagnostic:
        return self.emit(message, level=logging.ERROR)

    def snapshot(self, since: int = 0) -> List[Diagnostic]:
        with self._lock:
            return [item for item in self._messages if item.sequence > since]
