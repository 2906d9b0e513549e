"""
Roster parsing: turns an uploaded CSV / spreadsheet into RosterRecords.

Header problems fail the whole file. Row problems are returned as
``ParseError`` values next to the good records so the admin sees every
offending line in one pass.
"""

import csv
import io
import logging
import struct
import zipfile
from dataclasses import dataclass, field
from typing import List

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

from portal.config import Config
from portal.departments import normalize_department
from portal.errors import MissingHeaders, NoValidRecords, UnsupportedFormat, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ["name", "email", "phone", "studentid", "department"]
DEFAULT_PASSWORD = Config.DEFAULT_STUDENT_PASSWORD

_TEMPLATE_EXAMPLE = ["Jane Doe", "jane.doe@example.com", "9876543210", "STU001", "Computer Science Entire"]


@dataclass(frozen=True)
class RosterRecord:
    name: str
    email: str
    phone: str
    student_id: str
    department: str
    password: str = DEFAULT_PASSWORD
    role: str = "student"


@dataclass(frozen=True)
class ParseError:
    row: int  # 1-based line number, header is row 1
    message: str

    def __str__(self):
        return f"Row {self.row}: {self.message}"


@dataclass
class RosterParseResult:
    records: List[RosterRecord] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    skipped_rows: int = 0


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  READERS  (bytes → rows of text cells)                             ║
# ╚══════════════════════════════════════════════════════════════════════╝

def _cell_text(value) -> str:
    if value is None:
        return ""
    # Spreadsheets store numeric ids/phones as floats
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_csv(data: bytes):
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("Roster file is not valid UTF-8 text.")
    return [[cell.strip() for cell in row] for row in csv.reader(io.StringIO(text))]


def _trim_trailing_blanks(row):
    cells = [_cell_text(v) for v in row]
    while cells and cells[-1] == "":
        cells.pop()
    return cells


def _read_xlsx(data: bytes):
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError):
        raise UnsupportedFormat("Could not read the spreadsheet. Is it a valid .xlsx file?")
    try:
        sheet = workbook.worksheets[0]
        return [_trim_trailing_blanks(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_xls(data: bytes):
    try:
        book = xlrd.open_workbook(file_contents=data)
    except (xlrd.XLRDError, CompDocError, struct.error, IndexError, ValueError):
        raise UnsupportedFormat("Could not read the spreadsheet. Is it a valid .xls file?")
    sheet = book.sheet_by_index(0)
    return [_trim_trailing_blanks(sheet.row_values(i)) for i in range(sheet.nrows)]


_READERS = {
    ".csv": (_read_csv, False),
    ".xlsx": (_read_xlsx, True),
    ".xls": (_read_xls, True),
}


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  PARSER                                                            ║
# ╚══════════════════════════════════════════════════════════════════════╝

def parse_roster(data: bytes, extension: str, default_password: str = DEFAULT_PASSWORD) -> RosterParseResult:
    """Parse roster bytes. ``extension`` includes the dot, e.g. ``.csv``."""
    ext = (extension or "").lower()
    if not ext.startswith("."):
        ext = "." + ext
    if ext not in _READERS:
        raise UnsupportedFormat(
            "Unsupported file type. Please use CSV or Excel (.xlsx, .xls) files."
        )

    reader, is_spreadsheet = _READERS[ext]
    rows = reader(data)

    headers = [h.strip().lower() for h in rows[0]] if rows else []
    missing = [h for h in REQUIRED_HEADERS if h not in headers]
    if missing:
        raise MissingHeaders(missing)

    index = {h: headers.index(h) for h in REQUIRED_HEADERS}
    width = len(headers)
    result = RosterParseResult()

    for line_no, cells in enumerate(rows[1:], start=2):
        if not any(cells):
            continue

        if is_spreadsheet and len(cells) < width:
            # Trailing blank cells were trimmed above; restore them
            cells = cells + [""] * (width - len(cells))

        if len(cells) != width:
            logger.warning(
                "Roster row %d skipped: %d cells, expected %d", line_no, len(cells), width
            )
            result.skipped_rows += 1
            continue

        name = cells[index["name"]]
        raw_department = cells[index["department"]]
        department = normalize_department(raw_department)
        if department is None:
            result.errors.append(
                ParseError(line_no, f"Student {name or '(no name)'} has no department")
            )
            continue

        result.records.append(
            RosterRecord(
                name=name,
                email=cells[index["email"]].lower(),
                phone=cells[index["phone"]],
                student_id=cells[index["studentid"]],
                department=department,
                password=default_password,
            )
        )

    if not result.records:
        raise NoValidRecords(
            payload={
                "errors": [str(e) for e in result.errors],
                "skippedRows": result.skipped_rows,
            }
        )

    return result


def roster_template_csv() -> str:
    """Content of the downloadable roster template."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REQUIRED_HEADERS)
    writer.writerow(_TEMPLATE_EXAMPLE)
    return buffer.getvalue()
