"""
Spreadsheet parsers module.
"""

from parsers.spreadsheet_reader import read_grid
from parsers.header_detector import (
    detect_header_row,
    rows_from_grid,
    HEADER_KEYWORDS,
)

__all__ = [
    "read_grid",
    "detect_header_row",
    "rows_from_grid",
    "HEADER_KEYWORDS",
]
