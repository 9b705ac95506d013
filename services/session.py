"""Session orchestration: serial reader, marker waits, parsing and export."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Callable, List, Optional, Tuple

from app.schemas import SessionState
from ingest.framer import LineFramer
from ingest.reader import SerialReaderHandle, start_reader
from ingest.session_buffer import SessionBuffer
from ingest.trigger import TriggerDetector
from models.records import LineError, ParsedRecord
from services.diagnostics import Diagnostics
from services.errors import NotConnectedError, TransportError, WaitCancelled
from services.export import ExportBuilder, ExportTable
from services.parser import RecordParser
from settings import (
    DEFAULT_END_MARKER,
    DEFAULT_READ_COMMAND,
    DEFAULT_TRIGGER_MARKER,
    Settings,
    get_settings,
)
from transport.serial_link import SerialTransport, Transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, Optional[int]], Transport]

_READER_JOIN_TIMEOUT = 2.0


@dataclass(frozen=True)
class SessionConfig:
    trigger_marker: str = DEFAULT_TRIGGER_MARKER
    end_marker: str = DEFAULT_END_MARKER
    read_command: str = DEFAULT_READ_COMMAND
    poll_interval: float = 0.1
    temperature_keyword: str = "Temp"
    humidity_keyword: str = "Humidity"
    chill_unit_label: str = "Utah"
    diagnostics_capacity: int = 500

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionConfig":
        return cls(
            trigger_marker=settings.trigger_marker,
            end_marker=settings.end_marker,
            read_command=settings.read_command,
            poll_interval=settings.poll_interval,
            temperature_keyword=settings.temperature_keyword,
            humidity_keyword=settings.humidity_keyword,
            chill_unit_label=settings.chill_unit_label,
            diagnostics_capacity=settings.diagnostics_capacity,
        )


@dataclass
class ReadResult:
    line_count: int
    records: List[ParsedRecord] = field(default_factory=list)
    errors: List[LineError] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    port: Optional[str]
    line_count: int
    record_count: int
    has_batch: bool
    last_error: Optional[str]


class SessionService:
    """Owns one serial session at a time.

    A background reader thread frames incoming bytes into the session
    buffer. Waits and read cycles run on the caller's thread and only touch
    the buffer through its lock, so they never stall the reader.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.diagnostics = Diagnostics(capacity=self.config.diagnostics_capacity)
        self.parser = RecordParser(
            temperature_keyword=self.config.temperature_keyword,
            humidity_keyword=self.config.humidity_keyword,
        )
        self.exporter = ExportBuilder(label=self.config.chill_unit_label)
        self._transport_factory = transport_factory or _open_serial_transport

        self._state_lock = Lock()
        self._read_lock = Lock()
        self._state = SessionState.idle
        self._port: Optional[str] = None
        self._last_error: Optional[str] = None
        self._transport: Optional[Transport] = None
        self._reader: Optional[SerialReaderHandle] = None
        self._buffer = SessionBuffer()
        self._detector = TriggerDetector(self._buffer, poll_interval=self.config.poll_interval)
        self._records: List[ParsedRecord] = []
        self._has_batch = False

    # -- connection lifecycle -------------------------------------------------

    def connect(self, port: str, baudrate: Optional[int] = None) -> None:
        """Open ``port`` and start reading from it."""
        try:
            transport = self._transport_factory(port, baudrate)
        except TransportError as exc:
            self.diagnostics.error(f"Failed to open port: {exc}")
            raise
        self.attach(transport, port=port)

    def attach(self, transport: Transport, port: Optional[str] = None) -> None:
        """Start a session on an already opened transport."""
        self.close()

        buffer = SessionBuffer()
        detector = TriggerDetector(buffer, poll_interval=self.config.poll_interval)
        framer = LineFramer(sink=self._line_sink(buffer))
        with self._state_lock:
            self._transport = transport
            self._buffer = buffer
            self._detector = detector
            self._port = port or getattr(transport, "port", None)
            self._last_error = None
            self._state = SessionState.connected
            self._reader = start_reader(transport, framer, on_error=self._on_transport_error)

        self.diagnostics.emit(f"Connected to {self._port}")

    def close(self) -> None:
        """Tear the session down, cancelling any wait in progress."""
        with self._state_lock:
            transport, reader, detector = self._transport, self._reader, self._detector
            self._transport = None
            self._reader = None
            was_open = self._state in (SessionState.connected, SessionState.failed)
            if was_open:
                self._state = SessionState.closed

        detector.cancel()
        if reader is not None:
            reader.stop(join=True, timeout=_READER_JOIN_TIMEOUT)
            if reader.is_alive():
                logger.warning("Serial reader thread did not stop in time")
        if transport is not None:
            transport.close()
        if was_open:
            self.diagnostics.emit("Disconnected")

    shutdown = close

    # -- session flow ------------------------------------------------------------

    def wait_for_trigger(self, timeout: Optional[float] = None) -> bool:
        """Block until the device announces its log file is ready.

        Returns False if ``timeout`` elapses first.
        """
        _, buffer, detector = self._require_connected()
        marker = self.config.trigger_marker
        self.diagnostics.emit(f"Waiting for trigger: {marker}")
        found = self._wait(detector, marker, timeout)
        if found:
            self.diagnostics.emit("Trigger detected")
        else:
            self.diagnostics.warning(f"Timed out waiting for trigger: {marker}")
        return found

    def read_log(self, timeout: Optional[float] = None) -> ReadResult:
        """Request the log from the device and parse it.

        The buffer is cleared, the read command is sent, and the call blocks
        until the end-of-file marker arrives. The parsed batch replaces the
        previous one only when the whole cycle succeeds.
        """
        with self._read_lock:
            transport, buffer, detector = self._require_connected()
            command = self.config.read_command
            buffer.clear()
            self.diagnostics.emit(f"Sending '{command}' to Arduino...")
            try:
                transport.write(command.encode("ascii"))
            except TransportError as exc:
                self.diagnostics.error(f"Write failed: {exc}")
                self._mark_failed(str(exc))
                raise

            marker = self.config.end_marker
            if not self._wait(detector, marker, timeout):
                self.diagnostics.warning(f"Timed out waiting for end marker: {marker}")
                raise TimeoutError(f"End marker {marker!r} not received within {timeout}s.")

            lines = buffer.snapshot()
            self.diagnostics.emit(f"End of file detected; parsing {len(lines)} lines")
            parsed = self.parser.parse(lines)
            for error in parsed.errors:
                self.diagnostics.warning(
                    f"Skipping line due to parse error: {error.line} ({error.reason})"
                )
            self.diagnostics.emit(f"Parsed {len(parsed.records)} rows")

            with self._state_lock:
                self._records = list(parsed.records)
                self._has_batch = True

            logger.info(
                "Read cycle complete",
                extra={
                    "line_count": len(lines),
                    "record_count": len(parsed.records),
                    "error_count": len(parsed.errors),
                },
            )
            return ReadResult(line_count=len(lines), records=parsed.records, errors=parsed.errors)

    def auto(self, timeout: Optional[float] = None) -> ReadResult:
        """Wait for the trigger, then run a read cycle, sharing one timeout."""
        self.diagnostics.emit("Auto: wait -> read -> export")
        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            if not self.wait_for_trigger(timeout=timeout):
                raise TimeoutError(f"Trigger not received within {timeout}s.")
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            return self.read_log(timeout=remaining)
        except (TransportError, NotConnectedError, WaitCancelled, TimeoutError) as exc:
            self.diagnostics.error(f"Auto failed: {exc}")
            raise

    # -- results -----------------------------------------------------------------

    def records(self) -> List[ParsedRecord]:
        with self._state_lock:
            return list(self._records)

    def export(self) -> ExportTable:
        return self.exporter.build(self.records())

    def status(self) -> SessionSnapshot:
        with self._state_lock:
            return SessionSnapshot(
                state=self._state,
                port=self._port,
                line_count=len(self._buffer),
                record_count=len(self._records),
                has_batch=self._has_batch,
                last_error=self._last_error,
            )

    # -- internals ---------------------------------------------------------------

    def _require_connected(self) -> Tuple[Transport, SessionBuffer, TriggerDetector]:
        with self._state_lock:
            if self._state is SessionState.failed:
                raise TransportError(self._last_error or "Serial link failed.")
            if self._state is not SessionState.connected or self._transport is None:
                raise NotConnectedError("No serial device is connected.")
            return self._transport, self._buffer, self._detector

    def _wait(self, detector: TriggerDetector, marker: str, timeout: Optional[float]) -> bool:
        try:
            return detector.wait(marker, timeout=timeout)
        except WaitCancelled as exc:
            with self._state_lock:
                failure = self._last_error if self._state is SessionState.failed else None
            if failure is not None:
                raise TransportError(failure) from exc
            raise

    def _line_sink(self, buffer: SessionBuffer) -> Callable[[str], None]:
        def sink(line: str) -> None:
            logger.debug("%s", line, extra={"port": self._port})
            buffer.append(line)

        return sink

    def _on_transport_error(self, exc: TransportError) -> None:
        self.diagnostics.error(f"IO Manager error: {exc}")
        self._mark_failed(str(exc))

    def _mark_failed(self, reason: str) -> None:
        with self._state_lock:
            self._state = SessionState.failed
            self._last_error = reason
            detector = self._detector
        detector.cancel()


def _open_serial_transport(port: str, baudrate: Optional[int]) -> Transport:
    settings = get_settings()
    return SerialTransport(
        port,
        baudrate=baudrate or settings.baudrate,
        read_timeout=settings.read_timeout,
    )


@lru_cache
def build_default_session() -> SessionService:
    """Factory that wires the session with environment settings."""
    return SessionService(config=SessionConfig.from_settings(get_settings()))
