"""Serial transport backed by pyserial."""

from __future__ import annotations

import logging
from typing import Protocol

import serial

from services.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600
DEFAULT_READ_TIMEOUT = 0.1
DEFAULT_WRITE_TIMEOUT = 1.0
MAX_READ_SIZE = 4096


class Transport(Protocol):
    """Byte link to the device.

    ``read`` returns ``b""`` when nothing arrived within the link's idle
    timeout; failures of the link are raised as :class:`TransportError`.
    """

    def read(self, size: int = MAX_READ_SIZE) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class SerialTransport:
    """8N1 serial port opened through ``serial.serial_for_url``.

    ``port`` may be a device name (``/dev/ttyACM0``, ``COM5``) or any
    pyserial URL such as ``loop://``.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        try:
            self._serial = serial.serial_for_url(
                port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=read_timeout,
                write_timeout=write_timeout,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            raise TransportError(f"Failed to open port {port}: {exc}") from exc
        logger.info("Opened serial port at %d baud", baudrate, extra={"port": port})

    @property
    def is_open(self) -> bool:
        return bool(self._serial.is_open)

    def read(self, size: int = MAX_READ_SIZE) -> bytes:
        try:
            waiting = self._serial.in_waiting
            return self._serial.read(max(1, min(size, waiting)))
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Serial read failed: {exc}") from exc

    def write(self, data: bytes) -> None:
        try:
            self._serial.write(data)
            self._serial.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Write failed: {exc}") from exc
        logger.debug("Wrote to serial port", extra={"port": self.port, "bytes": len(data)})

    def close(self) -> None:
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("Error while closing serial port: %s", exc, extra={"port": self.port})
