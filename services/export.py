"""Assemble parsed readings into an export table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from models.records import ExportRow, ParsedRecord
from services.chill_units import ChillUnitAccumulator

DEFAULT_CHILL_UNIT_LABEL = "Utah"


def build_export_rows(records: Iterable[ParsedRecord]) -> List[ExportRow]:
    accumulator = ChillUnitAccumulator()
    rows: List[ExportRow] = []
    for index, record in enumerate(records, start=1):
        units, total = accumulator.add(record.temperature_celsius)
        rows.append(
            ExportRow(index=index, record=record, chill_units=units, cumulative_chill_units=total)
        )
    return rows


def build_header(label: str = DEFAULT_CHILL_UNIT_LABEL) -> List[str]:
    return ["#", "Timestamp", "Temp (°C)", "Humidity (%)", label, f"Cumulative {label}"]


def format_preview(rows: Iterable[ExportRow]) -> List[str]:
    """One human readable line per row, for list views."""
    return [
        f"{row.index}. {row.record.timestamp} — {row.record.temperature_celsius}°C"
        f" — {row.record.humidity_percent}%"
        for row in rows
    ]


@dataclass
class ExportTable:
    """Header plus export rows, ready for a tabular writer."""

    header: List[str]
    rows: List[ExportRow] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.header[4]

    def values(self) -> List[List[Any]]:
        """Data rows as plain cell values, in header order."""
        return [
            [
                row.index,
                row.record.timestamp,
                row.record.temperature_celsius,
                row.record.humidity_percent,
                row.chill_units,
                row.cumulative_chill_units,
            ]
            for row in self.rows
        ]

    def as_dicts(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.header, values)) for values in self.values()]


class ExportBuilder:

    def __init__(self, label: str = DEFAULT_CHILL_UNIT_LABEL) -> None:
        self.label = label

    def build(self, records: Iterable[ParsedRecord]) -> ExportTable:
        return ExportTable(header=build_header(self.label), rows=build_export_rows(records))
