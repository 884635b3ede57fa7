"""
Header row detection.

Spreadsheets exported from other systems often carry title or filter rows
above the real column headers. The header row is the first row, within the
leading scan window, with at least two cells that look like column names.
"""

from typing import Any, Optional, Sequence
import structlog

from exceptions import EmptyInputError
from utils.text_utils import is_blank, safe_str

logger = structlog.get_logger(__name__)

HEADER_KEYWORDS = (
    "id", "date", "qty", "item", "machine", "unit",
    "status", "name", "part", "serial", "brand", "model",
)
MIN_KEYWORD_HITS = 2
DEFAULT_SCAN_ROWS = 10


def _keyword_hits(row: Sequence[Any]) -> int:
    """Count cells containing any header keyword."""
    hits = 0
    for cell in row:
        text = "" if is_blank(cell) else str(cell).strip().lower()
        if text and any(keyword in text for keyword in HEADER_KEYWORDS):
            hits += 1
    return hits


def detect_header_row(grid: Sequence[Sequence[Any]], scan_rows: int = DEFAULT_SCAN_ROWS) -> int:
    """
    Find the index of the header row.

    Args:
        grid: Raw cell rows as read from the spreadsheet
        scan_rows: How many leading rows to consider

    Returns:
        0-based index of the first row with >= 2 keyword hits, or 0

    Raises:
        EmptyInputError: If the grid has no rows at all
    """
    if not grid:
        raise EmptyInputError("Spreadsheet is empty")

    for index, row in enumerate(grid[:scan_rows]):
        if _keyword_hits(row) >= MIN_KEYWORD_HITS:
            logger.debug("header_row_detected", index=index)
            return index

    logger.debug("header_row_fallback", scanned=min(len(grid), scan_rows))
    return 0


def rows_from_grid(grid: Sequence[Sequence[Any]], header_index: int) -> list[dict[str, Any]]:
    """
    Pair each data row below the header with the header cells.

    Short rows give None for the missing cells. Blank header cells and
    fully blank data rows are dropped.
    """
    if header_index >= len(grid):
        return []

    headers: list[Optional[str]] = [safe_str(h) for h in grid[header_index]]

    rows = []
    for raw in grid[header_index + 1:]:
        row = {}
        for position, header in enumerate(headers):
            if header is None or header in row:
                continue
            row[header] = raw[position] if position < len(raw) else None
        if any(not is_blank(value) for value in row.values()):
            rows.append(row)
    return rows
