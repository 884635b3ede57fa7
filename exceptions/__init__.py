"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    DatabaseError,

    # Spreadsheet
    SpreadsheetParseError,
    EmptyInputError,
    UnknownImportTargetError,

    # Persistence
    UnknownTableError,
    BatchPersistenceError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "DatabaseError",

    # Spreadsheet
    "SpreadsheetParseError",
    "EmptyInputError",
    "UnknownImportTargetError",

    # Persistence
    "UnknownTableError",
    "BatchPersistenceError",
]
