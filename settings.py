from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_SERIAL_PORT_ENV = "SERIAL_PORT"
_BAUDRATE_ENV = "SERIAL_BAUDRATE"
_READ_TIMEOUT_ENV = "SERIAL_READ_TIMEOUT"
_TRIGGER_MARKER_ENV = "SESSION_TRIGGER_MARKER"
_END_MARKER_ENV = "SESSION_END_MARKER"
_READ_COMMAND_ENV = "SESSION_READ_COMMAND"
_POLL_INTERVAL_ENV = "SESSION_POLL_INTERVAL"
_TEMPERATURE_KEYWORD_ENV = "READING_TEMPERATURE_KEYWORD"
_HUMIDITY_KEYWORD_ENV = "READING_HUMIDITY_KEYWORD"
_CHILL_UNIT_LABEL_ENV = "CHILL_UNIT_LABEL"
_DIAGNOSTICS_CAPACITY_ENV = "DIAGNOSTICS_CAPACITY"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_TRIGGER_MARKER = "File created and data written."
DEFAULT_END_MARKER = "--- END OF FILE ---"
DEFAULT_READ_COMMAND = "l"


@dataclass(frozen=True)
class Settings:
    serial_port: Optional[str]
    baudrate: int
    read_timeout: float
    trigger_marker: str
    end_marker: str
    read_command: str
    poll_interval: float
    temperature_keyword: str
    humidity_keyword: str
    chill_unit_label: str
    diagnostics_capacity: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_command(default: str) -> str:
    # The device protocol is a single command byte.
    candidate = _read_str_env(_READ_COMMAND_ENV, default)
    return candidate if len(candidate) == 1 and candidate.isascii() else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        serial_port=_read_optional_env(_SERIAL_PORT_ENV, None),
        baudrate=_read_positive_int(_BAUDRATE_ENV, 9600),
        read_timeout=_read_positive_float(_READ_TIMEOUT_ENV, 0.1),
        trigger_marker=_read_str_env(_TRIGGER_MARKER_ENV, DEFAULT_TRIGGER_MARKER),
        end_marker=_read_str_env(_END_MARKER_ENV, DEFAULT_END_MARKER),
        read_command=_read_command(DEFAULT_READ_COMMAND),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 0.1),
        temperature_keyword=_read_str_env(_TEMPERATURE_KEYWORD_ENV, "Temp"),
        humidity_keyword=_read_str_env(_HUMIDITY_KEYWORD_ENV, "Humidity"),
        chill_unit_label=_read_str_env(_CHILL_UNIT_LABEL_ENV, "Utah"),
        diagnostics_capacity=_read_positive_int(_DIAGNOSTICS_CAPACITY_ENV, 500),
        log_level=_read_log_level("INFO"),
    )
