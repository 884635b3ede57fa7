"""
Translate records between the UI's camelCase shape and Supabase columns.

    to_row({"machineId": "M-1"}, "issues")   -> {"machine_id": "M-1"}
    from_row({"machine_id": "M-1"})          -> {"machineId": "M-1"}
"""

import re
from typing import Any

# Stored as comma-joined text, exchanged as lists
LIST_FIELDS = frozenset({
    "allowedLocationIds",
    "allowedSectorIds",
    "allowedDivisionIds",
    "allowedMenus",
})

# Column defaults applied when a value is None or ""
EMPTY_COLUMN_DEFAULTS = {
    "name": "Unnamed",
    "status": "Active",
    "category": "General",
}

_UPPER = re.compile(r"[A-Z]")
_SEPARATED_LOWER = re.compile(r"[-_][a-z]")


def to_snake_case(key: str) -> str:
    """machineLocalNo -> machine_local_no"""
    return _UPPER.sub(lambda m: "_" + m.group(0).lower(), key)


def to_camel_case(key: str) -> str:
    """machine_local_no -> machineLocalNo"""
    return _SEPARATED_LOWER.sub(lambda m: m.group(0)[1].upper(), key)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def to_row(record: dict[str, Any], table: str) -> dict[str, Any]:
    """
    Convert a camelCase record to a snake_case row for the given table.

    Args:
        record: Record as exchanged with the UI
        table: Supabase table name (not the frontend key)

    Returns:
        New dict ready for upsert
    """
    row: dict[str, Any] = {}
    for key, value in record.items():
        column = to_snake_case(key)

        if key in LIST_FIELDS and isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)

        if _is_empty(value) and column in EMPTY_COLUMN_DEFAULTS:
            value = EMPTY_COLUMN_DEFAULTS[column]

        row[column] = value

    if table == "items" and not row.get("name"):
        row["name"] = "Unnamed Item"
    elif table == "machines" and not row.get("status"):
        row["status"] = "Working"

    return row


def from_row(row: dict[str, Any]) -> dict[str, Any]:
    """Convert a snake_case row to a camelCase record."""
    record: dict[str, Any] = {}
    for column, value in row.items():
        key = to_camel_case(column)
        if key in LIST_FIELDS and isinstance(value, str):
            record[key] = value.split(",") if value else []
        else:
            record[key] = value
    return record
