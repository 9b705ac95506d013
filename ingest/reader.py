"""Background thread that pumps transport bytes through a line framer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ingest.framer import LineFramer
from services.errors import TransportError
from transport.serial_link import MAX_READ_SIZE, Transport

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[TransportError], None]


def reader_loop(
    transport: Transport,
    framer: LineFramer,
    *,
    stop_event: Optional[threading.Event] = None,
    on_error: Optional[ErrorCallback] = None,
    chunk_size: int = MAX_READ_SIZE,
) -> None:
    """Feed chunks from ``transport`` into ``framer`` until stopped.

    A transport failure ends the loop and is passed to ``on_error`` unless
    the loop was already asked to stop. Any unterminated tail is flushed as a
    final line on exit.
    """
    try:
        while stop_event is None or not stop_event.is_set():
            chunk = transport.read(chunk_size)
            if chunk:
                framer.feed(chunk)
    except TransportError as exc:
        if stop_event is not None and stop_event.is_set():
            logger.debug("Transport closed while stopping: %s", exc)
        else:
            logger.error("IO Manager error: %s", exc)
            if on_error is not None:
                on_error(exc)
    finally:
        framer.finalize()


@dataclass
class SerialReaderHandle:
    thread: threading.Thread
    stop_event: threading.Event
    framer: LineFramer

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if join and self.thread is not threading.current_thread():
            self.thread.join(timeout)

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_reader(
    transport: Transport,
    framer: LineFramer,
    *,
    on_error: Optional[ErrorCallback] = None,
    thread_name: Optional[str] = None,
) -> SerialReaderHandle:
    """Start a daemon thread running :func:`reader_loop`."""
    stop_event = threading.Event()

    def _target() -> None:
        reader_loop(transport, framer, stop_event=stop_event, on_error=on_error)

    thread = threading.Thread(
        target=_target,
        name=thread_name or "SerialReader",
        daemon=True,
    )
    thread.start()
    return SerialReaderHandle(thread=thread, stop_event=stop_event, framer=framer)
