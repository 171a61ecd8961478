"""Reading and writing the scorecard sheet layout (.xlsx and .csv).

Import and export share one column layout so an exported file can be fed
straight back into the importer.
"""

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any
from xml.etree.ElementTree import ParseError

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from app.services.scorecards.errors import SpreadsheetFormatError

SUPPORTED_FORMATS = ("xlsx", "csv")

IMPORT_COLUMNS: tuple[str, ...] = (
    "Agent Email",
    "Employee ID",
    "Month",
    "Year",
    "Service",
    "Productivity",
    "Quality",
    "Assiduity",
    "Performance",
    "Adherence",
    "Lateness",
    "Break Exceeds",
    "Notes",
)
EXPORT_COLUMNS: tuple[str, ...] = (*IMPORT_COLUMNS, "Total Score", "Percentage")

# normalized header -> ScorecardImportRow field
HEADER_FIELDS: dict[str, str] = {
    "agent email": "agent_email",
    "email": "agent_email",
    "employee id": "employee_id",
    "month": "month",
    "year": "year",
    "service": "service",
    "productivity": "productivity",
    "quality": "quality",
    "assiduity": "assiduity",
    "performance": "performance",
    "adherence": "adherence",
    "lateness": "lateness",
    "break exceeds": "break_exceeds",
    "breakexceeds": "break_exceeds",
    "notes": "notes",
}

CONTENT_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


@dataclass(frozen=True)
class SheetRow:
    row_number: int
    values: dict[str, Any]


def normalize_header(value: Any) -> str:
    return " ".join(str(value or "").replace("_", " ").split()).lower()


def detect_format(filename: str | None) -> str:
    suffix = PurePath(filename or "").suffix.lower().lstrip(".")
    if suffix not in SUPPORTED_FORMATS:
        raise SpreadsheetFormatError(
            "unsupported_format", f"Unsupported file type '{suffix or filename}'; expected .xlsx or .csv"
        )
    return suffix


def _cell_value(cell: Any) -> Any:
    value = cell.value
    # A cell shown as 80% holds 0.8; hand it on as "80%" like a typed percentage.
    if isinstance(value, (int, float)) and not isinstance(value, bool) and "%" in (cell.number_format or ""):
        return f"{round(value * 100, 6)}%"
    return value


def _read_xlsx(content: bytes) -> list[tuple[Any, ...]]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, ParseError, KeyError, ValueError, OSError) as exc:
        raise SpreadsheetFormatError("unreadable_workbook", "Could not read workbook") from exc
    try:
        if not workbook.worksheets:
            raise SpreadsheetFormatError("empty_workbook", "Workbook has no worksheets")
        # Read-only sheets are parsed lazily, so damaged sheet XML only surfaces here.
        return [tuple(_cell_value(cell) for cell in row) for row in workbook.worksheets[0].iter_rows()]
    except (zipfile.BadZipFile, ParseError, KeyError, ValueError, OSError) as exc:
        raise SpreadsheetFormatError("unreadable_workbook", "Could not read workbook") from exc
    finally:
        workbook.close()


def _read_csv(content: bytes) -> list[tuple[Any, ...]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SpreadsheetFormatError("unreadable_csv", "CSV file must be UTF-8 encoded") from exc
    try:
        return [tuple(row) for row in csv.reader(io.StringIO(text))]
    except csv.Error as exc:
        raise SpreadsheetFormatError("unreadable_csv", f"Could not parse CSV: {exc}") from exc


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def read_rows(content: bytes, fmt: str) -> list[SheetRow]:
    """Data rows keyed by import field, numbered as in the sheet (header is row 1).

    Blank rows are dropped. Unknown columns, including ``Agent Name`` and the
    derived export totals, are ignored.
    """
    if fmt not in SUPPORTED_FORMATS:
        raise SpreadsheetFormatError("unsupported_format", f"Unsupported format '{fmt}'")
    raw_rows = _read_xlsx(content) if fmt == "xlsx" else _read_csv(content)
    if not raw_rows or all(_is_blank(cell) for cell in raw_rows[0]):
        raise SpreadsheetFormatError("missing_header", "The first row must contain column headers")

    columns: dict[int, str] = {}
    for index, header in enumerate(raw_rows[0]):
        field = HEADER_FIELDS.get(normalize_header(header))
        if field and field not in columns.values():
            columns[index] = field
    if "month" not in columns.values() or "year" not in columns.values():
        raise SpreadsheetFormatError("missing_columns", "Month and Year columns are required")
    if "agent_email" not in columns.values() and "employee_id" not in columns.values():
        raise SpreadsheetFormatError("missing_columns", "An Agent Email or Employee ID column is required")

    rows: list[SheetRow] = []
    for offset, raw in enumerate(raw_rows[1:], start=2):
        if all(_is_blank(cell) for cell in raw):
            continue
        values = {field: (raw[index] if index < len(raw) else None) for index, field in columns.items()}
        rows.append(SheetRow(row_number=offset, values=values))
    return rows


def _styled_sheet(columns: tuple[str, ...], title: str):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = title
    sheet.append(list(columns))
    header_fill = PatternFill("solid", fgColor="1F3C88")
    header_font = Font(color="FFFFFF", bold=True)
    for cell in sheet[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")
    for index, header in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = max(len(header) + 3, 12)
    sheet.freeze_panes = "A2"
    return workbook, sheet


def _save(workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _write_xlsx(rows: list[list[Any]]) -> bytes:
    workbook, sheet = _styled_sheet(EXPORT_COLUMNS, "Scorecards")
    for row in rows:
        sheet.append(row)
    for column in (len(EXPORT_COLUMNS) - 1, len(EXPORT_COLUMNS)):
        for cell in sheet.iter_rows(min_row=2, min_col=column, max_col=column):
            cell[0].number_format = "0.00"
    return _save(workbook)


def _write_csv(rows: list[list[Any]]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        *head, total_score, percentage = row
        writer.writerow(["" if value is None else value for value in head] + [f"{total_score:.2f}", f"{percentage:.2f}"])
    return output.getvalue().encode("utf-8")


def template_rows(year: int) -> list[list[Any]]:
    """One filled-in example row under the import header."""
    return [["agent@example.com", "EMP001", 1, year, 4, 4, 4, 5, 4, 5, 4, 5, None]]


def write_template(fmt: str, year: int) -> bytes:
    """Blank import sheet laid out as ``IMPORT_COLUMNS`` with a sample row."""
    rows = template_rows(year)
    if fmt == "xlsx":
        workbook, sheet = _styled_sheet(IMPORT_COLUMNS, "Scorecard Import")
        for row in rows:
            sheet.append(row)
        return _save(workbook)
    if fmt == "csv":
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(IMPORT_COLUMNS)
        writer.writerows(rows)
        return output.getvalue().encode("utf-8")
    raise SpreadsheetFormatError("unsupported_format", f"Unsupported format '{fmt}'")


def write_rows(rows: list[list[Any]], fmt: str) -> bytes:
    """Render rows laid out as ``EXPORT_COLUMNS``."""
    if fmt == "xlsx":
        return _write_xlsx(rows)
    if fmt == "csv":
        return _write_csv(rows)
    raise SpreadsheetFormatError("unsupported_format", f"Unsupported format '{fmt}'")
