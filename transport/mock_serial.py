from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional

from services.errors import TransportError
from transport.serial_link import DEFAULT_READ_TIMEOUT, MAX_READ_SIZE

Responder = Callable[[bytes], Iterable[bytes]]


class MockSerialTransport:
    """In-memory stand-in for a serial device.

    Tests push bytes with :meth:`feed` as if the device had sent them, and
    may install a ``responder`` that answers each write with more chunks.
    """

    def __init__(
        self,
        responder: Optional[Responder] = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.port = "mock://"
        self.responder = responder
        self.read_timeout = read_timeout
        self.written: List[bytes] = []
        self.closed = False
        self._chunks: Deque[bytes] = deque()
        self._read_error: Optional[Exception] = None
        self._write_error: Optional[Exception] = None
        self._condition = threading.Condition()

    def feed(self, *chunks: bytes) -> None:
        with self._condition:
            self._chunks.extend(chunk for chunk in chunks if chunk)
            self._condition.notify_all()

    def fail_reads(self, reason: str = "device disconnected") -> None:
        with self._condition:
            self._read_error = TransportError(reason)
            self._condition.notify_all()

    def fail_writes(self, reason: str = "write timeout") -> None:
        with self._condition:
            self._write_error = TransportError(reason)

    def drained(self) -> bool:
        with self._condition:
            return not self._chunks

    def read(self, size: int = MAX_READ_SIZE) -> bytes:
        with self._condition:
            self._condition.wait_for(
                lambda: self._chunks or self._read_error is not None or self.closed,
                self.read_timeout,
            )
            if self._read_error is not None:
                raise self._read_error
            if self.closed or not self._chunks:
                return b""
            chunk = self._chunks.popleft()
            if len(chunk) > size:
                self._chunks.appendleft(chunk[size:])
                chunk = chunk[:size]
            return chunk

    def write(self, data: bytes) -> None:
        with self._condition:
            if self.closed:
                raise TransportError("Write failed: port is closed")
            if self._write_error is not None:
                raise self._write_error
            self.written.append(bytes(data))
        if self.responder is not None:
            self.feed(*self.responder(bytes(data)))

    def close(self) -> None:
        with self._condition:
            self.closed = True
            self._condition.notify_all()
