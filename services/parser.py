"""Turn sensor log lines into structured readings.

The device prints one reading per line in the form::

    2024-01-01T10:00, Temp: 5.0°C, Humidity: 60%

Parsing runs in three stages that can be used on their own: a keyword
filter, a split into the three comma separated fields, and numeric
extraction from each ``label: value`` field. Lines that pass the filter but
fail a later stage are reported and dropped; they never abort the batch.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from models.records import LineError, ParsedRecord

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE_KEYWORD = "Temp"
DEFAULT_HUMIDITY_KEYWORD = "Humidity"

# "°" decoded from a non UTF-8 device shows up as U+FFFD.
_TEMPERATURE_SUFFIXES = ("°C", "°", "\ufffd", "C")


class LineParseError(ValueError):
    """A reading line did not match the expected field layout."""


@dataclass
class ParseResult:
    records: List[ParsedRecord] = field(default_factory=list)
    errors: List[LineError] = field(default_factory=list)


def is_reading_line(
    line: str,
    temperature_keyword: str = DEFAULT_TEMPERATURE_KEYWORD,
    humidity_keyword: str = DEFAULT_HUMIDITY_KEYWORD,
) -> bool:
    return temperature_keyword in line and humidity_keyword in line


def split_fields(line: str) -> Tuple[str, str, str]:
    parts = line.split(",")
    if len(parts) != 3:
        raise LineParseError(f"expected 3 comma-separated fields, got {len(parts)}")
    timestamp, temperature, humidity = (part.strip() for part in parts)
    return timestamp, temperature, humidity


def _field_value(field_text: str, name: str) -> str:
    _label, separator, value = field_text.partition(":")
    if not separator:
        raise LineParseError(f"{name} field has no ':' separator")
    return value


def _to_float(text: str, name: str) -> float:
    candidate = text.strip()
    if not candidate:
        raise LineParseError(f"{name} value is empty")
    try:
        value = float(candidate)
    except ValueError as exc:
        raise LineParseError(f"invalid {name} value {candidate!r}") from exc
    if not math.isfinite(value):
        raise LineParseError(f"invalid {name} value {candidate!r}")
    return value


def extract_temperature(field_text: str) -> float:
    value = _field_value(field_text, "temperature")
    for suffix in _TEMPERATURE_SUFFIXES:
        value = value.replace(suffix, "")
    return _to_float(value, "temperature")


def extract_humidity(field_text: str) -> float:
    value = _field_value(field_text, "humidity").replace("%", "")
    return _to_float(value, "humidity")


def parse_line(line: str) -> ParsedRecord:
    """Parse one reading line, raising :class:`LineParseError` on bad input."""
    timestamp, temperature_field, humidity_field = split_fields(line)
    return ParsedRecord(
        timestamp=timestamp,
        temperature_celsius=extract_temperature(temperature_field),
        humidity_percent=extract_humidity(humidity_field),
    )


class RecordParser:
    """Batch parser that keeps well-formed readings and reports the rest."""

    def __init__(
        self,
        temperature_keyword: str = DEFAULT_TEMPERATURE_KEYWORD,
        humidity_keyword: str = DEFAULT_HUMIDITY_KEYWORD,
    ) -> None:
        self.temperature_keyword = temperature_keyword
        self.humidity_keyword = humidity_keyword

    def parse(self, lines: Iterable[str]) -> ParseResult:
        result = ParseResult()
        for line_number, line in enumerate(lines, start=1):
            if not is_reading_line(line, self.temperature_keyword, self.humidity_keyword):
                continue
            try:
                record = parse_line(line)
            except LineParseError as exc:
                reason = str(exc)
                logger.warning(
                    "Skipping line due to parse error: %s",
                    line,
                    extra={"line_number": line_number, "reason": reason},
                )
                result.errors.append(LineError(line_number=line_number, line=line, reason=reason))
                continue
            result.records.append(record)

        logger.info(
            "Parsed %d rows",
            len(result.records),
            extra={"record_count": len(result.records), "error_count": len(result.errors)},
        )
        return result
