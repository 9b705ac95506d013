from __future__ import annotations

import csv
import io
from pathlib import Path

from openpyxl import load_workbook

from models.records import ParsedRecord
from services.export import ExportBuilder, build_export_rows, format_preview
from storage.export_files import (
    chill_unit_formula,
    export_filename,
    render_export,
    write_csv,
    write_xlsx,
)

HEADER = ["#", "Timestamp", "Temp (°C)", "Humidity (%)", "Utah", "Cumulative Utah"]


def _records() -> list[ParsedRecord]:
    return [
        ParsedRecord("2024-01-01T10:00", 5.0, 60.0),
        ParsedRecord("2024-01-01T11:00", 1.5, 61.0),
        ParsedRecord("2024-01-01T12:00", 19.0, 58.5),
    ]


def test_build_export_rows_indexes_and_accumulates() -> None:
    rows = build_export_rows(_records())

    assert [row.index for row in rows] == [1, 2, 3]
    assert [row.chill_units for row in rows] == [1.0, 0.5, -1.0]
    assert [row.cumulative_chill_units for row in rows] == [1.0, 1.5, 0.5]
    assert rows[0].record.timestamp == "2024-01-01T10:00"


def test_builder_header_and_values() -> None:
    table = ExportBuilder().build(_records())

    assert table.header == HEADER
    assert table.values()[0] == [1, "2024-01-01T10:00", 5.0, 60.0, 1.0, 1.0]
    assert table.as_dicts()[2]["Cumulative Utah"] == 0.5


def test_builder_uses_custom_label() -> None:
    table = ExportBuilder(label="CU").build([])

    assert table.header[-2:] == ["CU", "Cumulative CU"]
    assert table.label == "CU"


def test_zero_records_is_header_only() -> None:
    table = ExportBuilder().build([])

    assert table.header == HEADER
    assert table.rows == []
    assert table.values() == []


def test_format_preview() -> None:
    preview = format_preview(build_export_rows(_records()[:1]))

    assert preview == ["1. 2024-01-01T10:00 — 5.0°C — 60.0%"]


def test_chill_unit_formula_matches_band_table() -> None:
    assert chill_unit_formula("C2") == (
        'IF(C2="",0,IF(C2<1.111,0,IF(C2<2.222,0.5,IF(C2<8.889,1,'
        "IF(C2<12.222,0.5,IF(C2<15.556,0,IF(C2<18.333,-0.5,-1)))))))"
    )


def test_write_xlsx_values(tmp_path: Path) -> None:
    path = tmp_path / "out" / "log.xlsx"

    write_xlsx(ExportBuilder().build(_records()), path)

    sheet = load_workbook(path).active
    assert sheet.title == "Log"
    rows = list(sheet.iter_rows(values_only=True))
    assert list(rows[0]) == HEADER
    assert list(rows[1]) == [1, "2024-01-01T10:00", 5, 60, 1, 1]
    assert rows[3][5] == 0.5
    assert sheet.column_dimensions["B"].width == 20


def test_write_xlsx_formulas(tmp_path: Path) -> None:
    path = tmp_path / "log.xlsx"

    write_xlsx(ExportBuilder().build(_records()), path, use_formulas=True)

    sheet = load_workbook(path).active
    assert sheet["E2"].value == "=" + chill_unit_formula("C2")
    assert sheet["F3"].value == "=SUM(E$2:E3)"
    assert sheet["C4"].value == 19


def test_write_xlsx_empty_table(tmp_path: Path) -> None:
    path = tmp_path / "empty.xlsx"

    write_xlsx(ExportBuilder().build([]), path)

    rows = list(load_workbook(path).active.iter_rows(values_only=True))
    assert len(rows) == 1
    assert list(rows[0]) == HEADER


def test_write_csv(tmp_path: Path) -> None:
    path = tmp_path / "log.csv"

    write_csv(ExportBuilder().build(_records()), path)

    with path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == HEADER
    assert rows[2] == ["2", "2024-01-01T11:00", "1.5", "61.0", "0.5", "1.5"]


def test_render_export_bytes() -> None:
    table = ExportBuilder().build(_records())

    xlsx_bytes = render_export(table, "xlsx")
    csv_bytes = render_export(table, "csv")

    assert load_workbook(io.BytesIO(xlsx_bytes)).active["B2"].value == "2024-01-01T10:00"
    assert csv_bytes.decode("utf-8").splitlines()[0] == ",".join(HEADER)
    assert export_filename("csv") == "arduino_log.csv"
