"""Write export tables to spreadsheet and CSV files."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import BinaryIO, TextIO, Union

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from services.chill_units import ABOVE_BANDS_SCORE, CHILL_UNIT_BANDS
from services.export import ExportTable

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_NAME = "arduino_log.xlsx"
SHEET_TITLE = "Log"
COLUMN_WIDTHS = (5, 20, 12, 12, 12, 16)
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv"

Destination = Union[str, Path, BinaryIO]


def _format_number(value: float) -> str:
    return f"{value:g}"


def chill_unit_formula(temperature_cell: str) -> str:
    """Spreadsheet formula equivalent to ``chill_units`` for one cell."""
    expression = _format_number(ABOVE_BANDS_SCORE)
    for upper_bound, score in reversed(CHILL_UNIT_BANDS):
        expression = (
            f"IF({temperature_cell}<{_format_number(upper_bound)},{_format_number(score)},{expression})"
        )
    return f'IF({temperature_cell}="",0,{expression})'


def build_workbook(table: ExportTable, *, use_formulas: bool = False) -> Workbook:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append(table.header)

    for values in table.values():
        if use_formulas:
            excel_row = sheet.max_row + 1
            values[4] = "=" + chill_unit_formula(f"C{excel_row}")
            values[5] = f"=SUM(E$2:E{excel_row})"
        sheet.append(values)

    for column, width in enumerate(COLUMN_WIDTHS, start=1):
        sheet.column_dimensions[get_column_letter(column)].width = width
    return workbook


def write_xlsx(table: ExportTable, destination: Destination, *, use_formulas: bool = False) -> None:
    """Save ``table`` as an ``.xlsx`` workbook to a path or binary stream."""
    workbook = build_workbook(table, use_formulas=use_formulas)
    if isinstance(destination, (str, Path)):
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(path)
        logger.info("Excel saved", extra={"path": str(path), "record_count": len(table.rows)})
        return
    workbook.save(destination)


def _write_csv_rows(handle: TextIO, table: ExportTable) -> None:
    writer = csv.writer(handle)
    writer.writerow(table.header)
    writer.writerows(table.values())


def write_csv(table: ExportTable, destination: Union[str, Path, TextIO]) -> None:
    """Write a header row and all data rows as CSV."""
    if isinstance(destination, (str, Path)):
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as handle:
            _write_csv_rows(handle, table)
        logger.info("CSV saved", extra={"path": str(path), "record_count": len(table.rows)})
        return
    _write_csv_rows(destination, table)


def render_export(table: ExportTable, fmt: str = "xlsx", *, use_formulas: bool = False) -> bytes:
    """Serialize ``table`` in memory, for downloads."""
    if fmt == "xlsx":
        buffer = io.BytesIO()
        write_xlsx(table, buffer, use_formulas=use_formulas)
        return buffer.getvalue()
    if fmt == "csv":
        text = io.StringIO(newline="")
        write_csv(table, text)
        return text.getvalue().encode("utf-8")
    raise ValueError(f"Unsupported export format {fmt!r}.")


def export_filename(fmt: str = "xlsx") -> str:
    return f"{Path(DEFAULT_EXPORT_NAME).stem}.{fmt}"
