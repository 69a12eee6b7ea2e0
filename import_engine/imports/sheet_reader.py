"""Decoding of uploaded CSV and Excel files into ParsedSheet tables."""

import io
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import pandas as pd

from import_engine.imports.constants import SHEET_PREVIEW_ROWS
from import_engine.imports.exceptions import ParseError
from import_engine.imports.model import ParsedSheet, SheetInfo, SheetListing, SheetSource

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def build_parsed_sheet(raw_rows: Sequence[Sequence[Any]]) -> ParsedSheet:
    """
    Turn raw cell rows (header first) into a ParsedSheet.

    Headers are trimmed and blank-header columns are dropped from every row
    so cells stay aligned with their headers. Cells are trimmed and rows
    whose cells are all blank are filtered out.

    Raises:
        ParseError: If there is no header row or no data rows
    """
    if len(raw_rows) < 2:
        raise ParseError("Sheet is empty or has no data rows")

    header_cells = [_cell_text(h) for h in raw_rows[0]]
    keep = [index for index, header in enumerate(header_cells) if header]
    if not keep:
        raise ParseError("Sheet has no header row")

    headers = [header_cells[index] for index in keep]
    rows: List[List[str]] = []
    for raw in raw_rows[1:]:
        cells = [_cell_text(raw[index]) if index < len(raw) else "" for index in keep]
        # Trailing blanks carry no data
        while cells and cells[-1] == "":
            cells.pop()
        if any(cells):
            rows.append(cells)

    if not rows:
        raise ParseError("Sheet is empty or has no data rows")

    return ParsedSheet(headers=headers, rows=rows)


def _frame_rows(frame: pd.DataFrame) -> List[List[Any]]:
    return frame.astype(object).where(frame.notna(), None).values.tolist()


def _read_csv(content: bytes) -> ParsedSheet:
    options = dict(
        header=None, dtype=str, keep_default_na=False, skip_blank_lines=True, encoding="utf-8-sig"
    )
    try:
        width = pd.read_csv(io.BytesIO(content), nrows=1, **options).shape[1]
        # Cells beyond the header row's width are cut off, not rejected
        frame = pd.read_csv(
            io.BytesIO(content),
            engine="python",
            on_bad_lines=lambda fields: fields[:width],
            **options,
        )
    except pd.errors.EmptyDataError as e:
        raise ParseError("Sheet is empty or has no data rows") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ParseError(f"Could not read CSV file: {e}") from e

    return build_parsed_sheet(_frame_rows(frame))


def _sheet_info(name: str, frame: pd.DataFrame) -> SheetInfo:
    raw_rows = _frame_rows(frame)
    preview = [[_cell_text(cell) for cell in row] for row in raw_rows[:SHEET_PREVIEW_ROWS]]
    return SheetInfo(name=name, row_count=max(0, len(raw_rows) - 1), preview=preview)


def _read_excel(content: bytes, sheet_name: Optional[str]) -> Union[ParsedSheet, SheetListing]:
    try:
        workbook = pd.ExcelFile(io.BytesIO(content))
    except Exception as e:
        raise ParseError(f"Could not read Excel file: {e}") from e

    with workbook:
        names = [str(n) for n in workbook.sheet_names]
        if not names:
            raise ParseError("Workbook has no sheets")

        if len(names) > 1 and not sheet_name:
            sheets = [
                _sheet_info(name, workbook.parse(name, header=None, dtype=object))
                for name in names
            ]
            logger.info(f"Workbook has {len(sheets)} sheets, waiting for a sheet choice")
            return SheetListing(sheets=sheets)

        target = sheet_name or names[0]
        if target not in names:
            raise ParseError(f'Sheet "{target}" not found')

        frame = workbook.parse(target, header=None, dtype=object)

    return build_parsed_sheet(_frame_rows(frame))


def read_sheet(source: SheetSource, sheet_name: Optional[str] = None) -> Union[ParsedSheet, SheetListing]:
    """
    Decode an uploaded file.

    Args:
        source: File bytes and name (the extension picks the decoder)
        sheet_name: Sheet to read from a workbook

    Returns:
        ParsedSheet, or SheetListing when a multi-sheet workbook was given no sheet name

    Raises:
        ParseError: On empty, malformed or unsupported files
    """
    suffix = Path(source.filename or "").suffix.lower()
    if not source.content:
        raise ParseError("Uploaded file is empty")

    if suffix in CSV_EXTENSIONS:
        return _read_csv(source.content)
    if suffix in EXCEL_EXTENSIONS:
        return _read_excel(source.content, sheet_name)

    raise ParseError(
        f"Unsupported file type '{suffix or source.filename}'. "
        f"Upload one of: {sorted(CSV_EXTENSIONS | EXCEL_EXTENSIONS)}"
    )
