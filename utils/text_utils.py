"""
Cell value helpers shared by the spreadsheet parsers and the normalizer.

Spreadsheet cells arrive as str, int, float, datetime, NaN or None.
These helpers turn them into the canonical text/number/date shapes.
"""

import math
import re
from datetime import date, datetime
from typing import Optional, Union

import pandas as pd

QUOTE_CHARS = "'\"«»"

# Day 0 of the Excel 1900 date system (accounts for the 1900 leap-year bug)
EXCEL_EPOCH = "1899-12-30"
EXCEL_SERIAL_RANGE = (1, 2958465)

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d.%m.%Y",
]

_HEADER_STRIP = re.compile(r"[\s\-_.]+")
_NON_DIGITS = re.compile(r"\D+")


def is_blank(value) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_str(value) -> Optional[str]:
    """
    Convert a cell to stripped text, returning None for blank cells.

    Integral floats lose their ".0" (Excel stores "55" as 55.0).
    """
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    s = str(value).strip()
    return s if s else None


def normalize_header(header) -> str:
    """
    Canonical header key: whitespace, '-', '_' and '.' removed, lower-cased.

    "Item Code" -> "itemcode"
    "Chassis_No." -> "chassisno"
    """
    if is_blank(header):
        return ""
    return _HEADER_STRIP.sub("", str(header)).lower()


def clean_reference(value) -> str:
    """
    Clean a free-text entity reference.

    Trims whitespace and quote characters. Returns "" for blank input.
    """
    text = safe_str(value)
    if text is None:
        return ""
    return text.strip().strip(QUOTE_CHARS).strip()


def digits_only(value) -> str:
    """Strip every non-digit character."""
    if is_blank(value):
        return ""
    return _NON_DIGITS.sub("", safe_str(value) or "")


def parse_number(value) -> Union[int, float]:
    """
    Lenient numeric parse.

    "12" -> 12, "1,250.5" -> 1250.5, "abc" -> 0, blank -> 0.
    Integral results come back as int.
    """
    if is_blank(value) or isinstance(value, bool):
        return 0

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = str(value).strip().replace(",", "").replace(" ", "")
        try:
            number = float(cleaned)
        except ValueError:
            return 0

    if not math.isfinite(number):
        return 0
    if number.is_integer():
        return int(number)
    return number


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.utcnow().isoformat()


def parse_date(value) -> Optional[str]:
    """
    Parse a cell into an ISO-8601 string.

    Blank -> None. Unparsable but non-empty -> now.
    Numbers in the Excel serial range are read as Excel dates.
    """
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).isoformat()

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        low, high = EXCEL_SERIAL_RANGE
        if low <= value <= high:
            return pd.to_datetime(value, unit="D", origin=EXCEL_EPOCH).to_pydatetime().isoformat()
        return now_iso()

    value_str = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value_str, fmt).isoformat()
        except ValueError:
            continue

    # Pandas handles the long tail ("Jan 5 2024", ISO with offsets)
    try:
        parsed = pd.to_datetime(value_str)
    except (ValueError, TypeError, OverflowError):
        return now_iso()
    if pd.isna(parsed):
        return now_iso()
    return parsed.to_pydatetime().isoformat()
