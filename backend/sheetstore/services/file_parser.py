"""Parse uploaded CSV and Excel files into typed row dictionaries."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from openpyxl import load_workbook

from sheetstore.core.errors import ParseError, UnsupportedFileTypeError
from sheetstore.utils.coercion import clean_header, coerce_cell, is_blank_row
from sheetstore.utils.delimiter import detect_delimiter

logger = logging.getLogger(__name__)

NO_DATA_ROWS_MESSAGE = "No data rows found in the Excel file"

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME = "application/vnd.ms-excel"
XLSM_MIME = "application/vnd.ms-excel.sheet.macroEnabled.12"
CSV_MIME = "text/csv"

ALLOWED_MIME_TYPES = (
    XLSX_MIME,
    XLS_MIME,
    XLSM_MIME,
    CSV_MIME,
    "application/csv",
    "text/x-csv",
)

EXTENSION_TO_MIME = {
    "xlsx": XLSX_MIME,
    "xls": XLS_MIME,
    "xlsm": XLSM_MIME,
    "csv": CSV_MIME,
}

# Clients (curl, some browsers) send these for any binary upload
GENERIC_MIME_TYPES = ("application/octet-stream", "application/vnd.ms-office", "application/zip", "")

RowTransform = Callable[[dict[str, Any], int], "dict[str, Any] | None"]


@dataclass
class ParseResult:
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    total_rows: int = 0
    valid_rows: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def error_rows(self) -> int:
        return len(self.errors)


def resolve_mime_type(file_name: str | None, declared: str | None) -> str:
    """Replace generic or misleading MIME types using the file extension."""
    declared = (declared or "").lower()
    extension = Path(file_name or "").suffix.lstrip(".").lower()
    if extension == "csv":
        # Windows browsers report CSV files as application/vnd.ms-excel
        return CSV_MIME
    if declared in GENERIC_MIME_TYPES and extension in EXTENSION_TO_MIME:
        return EXTENSION_TO_MIME[extension]
    return declared


def _collect_rows(
    headers: list[str],
    raw_rows: Iterable[list[Any]],
    *,
    transform_row: RowTransform | None,
    max_rows: int | None,
    include_empty_rows: bool,
    strict_width: bool,
) -> ParseResult:
    result = ParseResult(headers=headers)

    for values in raw_rows:
        if max_rows is not None and len(result.rows) >= max_rows:
            break
        if is_blank_row(values) and not include_empty_rows:
            continue

        index = result.total_rows
        result.total_rows += 1

        if strict_width and len(values) != len(headers):
            result.errors.append(
                {
                    "row": index + 1,
                    "error": f"Expected {len(headers)} columns but found {len(values)}",
                    "rawData": list(values),
                }
            )
            continue

        row = {
            header: coerce_cell(values[i]) if i < len(values) else None
            for i, header in enumerate(headers)
        }

        try:
            transformed = transform_row(row, index) if transform_row else row
        except Exception as e:
            logger.warning(f"Row {index + 1} rejected by transform: {e}")
            result.errors.append({"row": index + 1, "error": str(e), "rawData": list(values)})
            continue

        if transformed is not None:
            result.rows.append(transformed)
            result.valid_rows += 1

    if result.total_rows == 0:
        raise ParseError(NO_DATA_ROWS_MESSAGE)
    return result


def parse_csv(
    file_path: Path,
    *,
    transform_row: RowTransform | None = None,
    max_rows: int | None = None,
    include_empty_rows: bool = False,
) -> ParseResult:
    """Stream a CSV file, detecting its delimiter first."""
    delimiter = detect_delimiter(file_path)
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.reader(handle, delimiter=delimiter)
            header_row = next(reader, None)
            if not header_row or is_blank_row(header_row):
                raise ParseError("CSV file appears to be empty or has no header row")
            headers = [clean_header(h, i) for i, h in enumerate(header_row)]

            return _collect_rows(
                headers,
                reader,
                transform_row=transform_row,
                max_rows=max_rows,
                include_empty_rows=include_empty_rows,
                strict_width=True,
            )
    except ParseError:
        raise
    except FileNotFoundError as e:
        raise ParseError(f"CSV file not found: {file_path}") from e
    except UnicodeDecodeError as e:
        raise ParseError(f"Failed to parse CSV file: file encoding error: {e}") from e
    except (csv.Error, OSError) as e:
        raise ParseError(f"Failed to parse CSV file: {e}") from e


def _iter_sheet_rows(rows: Iterator[tuple[Any, ...]]) -> Iterator[list[Any]]:
    for row in rows:
        yield list(row)


def parse_excel(
    file_path: Path,
    *,
    transform_row: RowTransform | None = None,
    max_rows: int | None = None,
    include_empty_rows: bool = False,
) -> ParseResult:
    """Read the first worksheet of a workbook; the first non-blank row holds the headers."""
    try:
        workbook = load_workbook(filename=str(file_path), read_only=True, data_only=True)
    except Exception as e:
        logger.error(f"Error opening workbook {file_path}: {e}", exc_info=True)
        raise ParseError(f"Failed to parse Excel file: {e}") from e

    try:
        if not workbook.worksheets:
            raise ParseError("No worksheets found in the Excel file")
        sheet_rows = _iter_sheet_rows(workbook.worksheets[0].iter_rows(values_only=True))

        header_row = next((row for row in sheet_rows if not is_blank_row(row)), None)
        if header_row is None:
            raise ParseError(NO_DATA_ROWS_MESSAGE)
        headers = [clean_header(h, i) for i, h in enumerate(header_row)]
        # read-only sheets pad rows to the widest column; drop trailing unnamed padding
        while headers and header_row[len(headers) - 1] is None and len(headers) > 1:
            headers.pop()

        return _collect_rows(
            headers,
            sheet_rows,
            transform_row=transform_row,
            max_rows=max_rows,
            include_empty_rows=include_empty_rows,
            strict_width=False,
        )
    except ParseError:
        raise
    except Exception as e:
        logger.error(f"Error parsing Excel file {file_path}: {e}", exc_info=True)
        raise ParseError(f"Failed to parse Excel file: {e}") from e
    finally:
        workbook.close()


def parse_file(
    file_path: str | Path,
    mime_type: str,
    *,
    transform_row: RowTransform | None = None,
    max_rows: int | None = None,
    include_empty_rows: bool = False,
) -> ParseResult:
    """Parse a file based on its MIME type.

    Args:
        file_path: Path to the staged upload.
        mime_type: Declared (or resolved) MIME type; selects the reader.
        transform_row: Called with ``(row, index)`` for every data row, where
            ``index`` is the 0-based position among non-blank data rows.
            Returning ``None`` drops the row; raising records a row error.
        max_rows: Stop after this many valid rows (previews).
        include_empty_rows: Keep rows whose cells are all blank.

    Raises:
        UnsupportedFileTypeError: No reader for ``mime_type``.
        ParseError: Unreadable file, or a file without data rows.
    """
    path = Path(file_path)
    mime = (mime_type or "").lower()
    options = {
        "transform_row": transform_row,
        "max_rows": max_rows,
        "include_empty_rows": include_empty_rows,
    }

    if "excel" in mime or "spreadsheet" in mime:
        return parse_excel(path, **options)
    if "csv" in mime:
        return parse_csv(path, **options)
    raise UnsupportedFileTypeError(f"Unsupported file type: {mime_type}")
