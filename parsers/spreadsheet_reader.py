"""
Spreadsheet reader.

Turns .xlsx/.xls/.csv uploads into a raw cell grid (list of rows).
No header handling happens here: the grid keeps every row, including
title rows above the real header, so the header detector can find it.
"""

import csv
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Optional, Union
import structlog

import pandas as pd

from exceptions import SpreadsheetParseError
from utils.text_utils import is_blank

logger = structlog.get_logger(__name__)

Grid = list[list[Any]]

CSV_EXTENSIONS = (".csv", ".txt")
CSV_ENCODINGS = ["utf-8-sig", "latin-1"]
CSV_DELIMITERS = (",", ";", "\t", "|")
DELIMITER_SAMPLE_LINES = 20
# xlrd reads legacy .xls; openpyxl everything else
EXCEL_ENGINES = {".xls": "xlrd"}
DEFAULT_EXCEL_ENGINE = "openpyxl"


def read_grid(
    file: Union[str, Path, BytesIO, bytes],
    filename: Optional[str] = None,
    sheet_name: Union[int, str] = 0,
) -> Grid:
    """
    Read a spreadsheet into a 2-D grid of cell values.

    Args:
        file: File path (str/Path), BytesIO, or raw bytes
        filename: Original upload name, used to pick the CSV or Excel reader
        sheet_name: Sheet index or name for workbooks

    Returns:
        Rows of cells. Blank cells are None; numbers stay numeric and
        dates come back as datetime.

    Raises:
        SpreadsheetParseError: If the file cannot be read
    """
    name = filename or (str(file) if isinstance(file, (str, Path)) else "")
    is_csv = name.lower().endswith(CSV_EXTENSIONS)

    logger.info("reading_spreadsheet", filename=name or None, csv=is_csv)

    try:
        df = _load_csv(file) if is_csv else _load_excel(file, sheet_name, name)
    except SpreadsheetParseError:
        raise
    except Exception as e:
        logger.error("spreadsheet_read_failed", filename=name or None, error=str(e))
        raise SpreadsheetParseError(
            message="Failed to read spreadsheet file",
            details={"filename": name, "original_error": str(e)}
        )

    grid = [
        [None if is_blank(cell) else _to_python(cell) for cell in row]
        for row in df.itertuples(index=False, name=None)
    ]

    logger.info("spreadsheet_read", rows=len(grid), columns=len(df.columns))
    return grid


def _load_excel(
    file: Union[str, Path, BytesIO, bytes],
    sheet_name: Union[int, str],
    name: str = ""
) -> pd.DataFrame:
    """Load a workbook sheet without treating any row as header."""
    engine = EXCEL_ENGINES.get(Path(name).suffix.lower(), DEFAULT_EXCEL_ENGINE)
    if isinstance(file, bytes):
        file = BytesIO(file)
    if isinstance(file, BytesIO):
        file.seek(0)
    return pd.read_excel(file, sheet_name=sheet_name, header=None, engine=engine)


def _load_csv(file: Union[str, Path, BytesIO, bytes]) -> pd.DataFrame:
    """Load a CSV, trying UTF-8 first and falling back to latin-1."""
    if isinstance(file, (str, Path)):
        raw = Path(file).read_bytes()
    elif isinstance(file, BytesIO):
        raw = file.getvalue()
    else:
        raw = file

    last_error: Optional[Exception] = None
    for encoding in CSV_ENCODINGS:
        try:
            text = raw.decode(encoding)
        except UnicodeDecodeError as e:
            last_error = e
            continue
        return _frame_from_text(text)

    raise SpreadsheetParseError(
        message="Could not decode CSV file",
        details={"original_error": str(last_error)}
    )


def _detect_delimiter(text: str) -> str:
    """Most frequent of , ; tab | across the first lines (comma on a tie or none)."""
    lines = text.splitlines()[:DELIMITER_SAMPLE_LINES]
    counts = {d: sum(line.count(d) for line in lines) for d in CSV_DELIMITERS}
    best = max(CSV_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] else ","


def _frame_from_text(text: str) -> pd.DataFrame:
    """
    Parse CSV text into a frame as wide as its widest row.

    Title rows above the header are usually a single cell, so shorter
    rows are padded with NaN instead of being rejected.
    """
    delimiter = _detect_delimiter(text)
    width = max((len(row) for row in csv.reader(StringIO(text), delimiter=delimiter)), default=0)
    if width == 0:
        return pd.DataFrame()
    return pd.read_csv(
        StringIO(text),
        header=None,
        sep=delimiter,
        names=list(range(width)),
        dtype=str,
        skip_blank_lines=False,
    )


def _to_python(cell: Any) -> Any:
    """Unwrap numpy/pandas scalars into plain Python values."""
    if isinstance(cell, pd.Timestamp):
        return cell.to_pydatetime()
    if hasattr(cell, "item") and not isinstance(cell, (str, bytes)):
        return cell.item()
    return cell
