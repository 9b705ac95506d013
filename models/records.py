"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ParsedRecord:
    """A single temperature/humidity reading recovered from a log line."""

    timestamp: str
    temperature_celsius: float
    humidity_percent: float


@dataclass(frozen=True, slots=True)
class ExportRow:
    """A parsed record positioned within an export, with its derived columns."""

    index: int
    record: ParsedRecord
    chill_units: float
    cumulative_chill_units: float


@dataclass(frozen=True, slots=True)
class LineError:
    """A line that looked like a reading but could not be parsed."""

    line_number: int
    line: str
    reason: str
