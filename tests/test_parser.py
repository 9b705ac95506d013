from __future__ import annotations

import logging

import pytest

from models.records import ParsedRecord
from services.parser import (
    LineParseError,
    RecordParser,
    extract_humidity,
    extract_temperature,
    is_reading_line,
    parse_line,
    split_fields,
)


def test_parse_line_example() -> None:
    record = parse_line("2024-01-01T10:00, Temp: 5.0°C, Humidity: 60%")

    assert record == ParsedRecord(
        timestamp="2024-01-01T10:00", temperature_celsius=5.0, humidity_percent=60.0
    )


def test_filter_requires_both_keywords() -> None:
    assert is_reading_line("x, Temp: 1, Humidity: 2")
    assert not is_reading_line("Temp: 1 only")
    assert not is_reading_line("Humidity: 2 only")
    assert is_reading_line("t, T=1, H=2", temperature_keyword="T=", humidity_keyword="H=")


def test_split_fields_requires_three_fields() -> None:
    assert split_fields(" ts , Temp: 1 , Humidity: 2 ") == ("ts", "Temp: 1", "Humidity: 2")

    with pytest.raises(LineParseError, match="got 2"):
        split_fields("Temp:5,Humidity:50")
    with pytest.raises(LineParseError, match="got 4"):
        split_fields("a, Temp: 1, Humidity: 2, extra")


@pytest.mark.parametrize(
    ("field", "expected"),
    [
        ("Temp: 5.0°C", 5.0),
        ("Temp: -3.25 C", -3.25),
        ("Temp:12", 12.0),
        ("Temp: 7.5�C", 7.5),
        ("Temp: 19.0°", 19.0),
    ],
)
def test_extract_temperature(field: str, expected: float) -> None:
    assert extract_temperature(field) == expected


@pytest.mark.parametrize("field", ["Temp 5.0", "Temp: ", "Temp: warm", "Temp: nan", "Temp: inf"])
def test_extract_temperature_rejects_bad_fields(field: str) -> None:
    with pytest.raises(LineParseError):
        extract_temperature(field)


def test_extract_humidity() -> None:
    assert extract_humidity("Humidity: 60%") == 60.0
    assert extract_humidity("Humidity:47.5 %") == 47.5

    with pytest.raises(LineParseError):
        extract_humidity("Humidity 60%")


def test_parse_skips_malformed_lines_and_keeps_order() -> None:
    lines = [
        "2024-01-01T10:00, Temp: 5.0°C, Humidity: 60%",
        "2024-01-01T10:05, Temp: ??°C, Humidity: 61%",
        "2024-01-01T10:10, Temp: 20.0°C, Humidity: 62%",
    ]

    result = RecordParser().parse(lines)

    assert [record.timestamp for record in result.records] == [
        "2024-01-01T10:00",
        "2024-01-01T10:10",
    ]
    assert len(result.errors) == 1
    assert result.errors[0].line_number == 2
    assert result.errors[0].line == lines[1]
    assert "invalid temperature value" in result.errors[0].reason


def test_parse_ignores_non_reading_lines_silently() -> None:
    lines = ["Sending log", "2024-01-01T10:00, Temp: 5.0°C, Humidity: 60%", "--- END OF FILE ---"]

    result = RecordParser().parse(lines)

    assert len(result.records) == 1
    assert result.errors == []


def test_parse_reports_field_count_errors() -> None:
    result = RecordParser().parse(
        [
            "Temp:5,Humidity:50",
            "2024-01-01T10:00, Temp: 1.5°C, Humidity: 40%",
        ]
    )

    assert [record.temperature_celsius for record in result.records] == [1.5]
    assert result.errors[0].reason == "expected 3 comma-separated fields, got 2"


def test_parse_logs_skipped_lines(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="services.parser"):
        RecordParser().parse(["ts, Temp: x, Humidity: 1%"])

    records = [record for record in caplog.records if record.name == "services.parser"]
    assert records
    assert "Skipping line due to parse error" in records[0].getMessage()
    assert getattr(records[0], "line_number", None) == 1


def test_parse_empty_input() -> None:
    result = RecordParser().parse([])

    assert result.records == []
    assert result.errors == []
