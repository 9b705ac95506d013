"""Thread-safe log of the lines received during the current session."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Optional

BufferPredicate = Callable[[List[str]], bool]


class SessionBuffer:
    """Append-only line log guarded by a single condition variable.

    The reader thread is the only writer. Readers never see the live list:
    ``snapshot`` returns a copy, and every mutation happens under the same
    lock, so a snapshot is either entirely before or entirely after a
    ``clear``.
    """

    def __init__(self) -> None:
        self._lines: List[str] = []
        self._generation = 0
        self._condition = threading.Condition(threading.Lock())

    def append(self, line: str) -> None:
        with self._condition:
            self._lines.append(line)
            self._condition.notify_all()

    def extend(self, lines: Iterable[str]) -> None:
        batch = list(lines)
        if not batch:
            return
        with self._condition:
            self._lines.extend(batch)
            self._condition.notify_all()

    def snapshot(self) -> List[str]:
        with self._condition:
            return list(self._lines)

    def clear(self) -> None:
        with self._condition:
            self._lines.clear()
            self._generation += 1
            self._condition.notify_all()

    def contains(self, substring: str) -> bool:
        with self._condition:
            return any(substring in line for line in self._lines)

    @property
    def generation(self) -> int:
        """Number of times the buffer has been cleared."""
        with self._condition:
            return self._generation

    def __len__(self) -> int:
        with self._condition:
            return len(self._lines)

    def wait_until(self, predicate: BufferPredicate, timeout: Optional[float] = None) -> bool:
        """Block until ``predicate(lines)`` holds or ``timeout`` elapses.

        The predicate runs under the buffer lock against the live list and
        must not retain or mutate it.
        """
        with self._condition:
            return self._condition.wait_for(lambda: predicate(self._lines), timeout)

    def notify_waiters(self) -> None:
        with self._condition:
            self._condition.notify_all()
