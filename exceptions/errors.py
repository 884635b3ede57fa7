"""
Custom exception classes for the application.

Route handlers convert any AppError into a JSON error body via to_dict().
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "UNKNOWN_TABLE")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# SPREADSHEET ERRORS
# ===================

class SpreadsheetParseError(ValidationError):
    """Spreadsheet file could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="SPREADSHEET_PARSE_ERROR",
            message=message,
            details=details
        )


class EmptyInputError(ValidationError):
    """No data rows to import."""

    def __init__(self, message: str = "Spreadsheet contains no data rows"):
        super().__init__(
            code="EMPTY_INPUT",
            message=message
        )


class UnknownImportTargetError(AppError):
    """Import target key is not one of the supported targets."""

    def __init__(self, target: str, valid: Optional[list[str]] = None):
        super().__init__(
            code="UNKNOWN_IMPORT_TARGET",
            message=f"Unknown import target: {target}",
            status_code=400,
            details={"provided": target, "valid": valid or []}
        )


# ===================
# PERSISTENCE ERRORS
# ===================

class UnknownTableError(AppError):
    """Frontend collection key has no table mapping."""

    def __init__(self, table_key: str):
        super().__init__(
            code="UNKNOWN_TABLE",
            message=f"No table mapping for collection: {table_key}",
            status_code=400,
            details={"table_key": table_key}
        )


class BatchPersistenceError(DatabaseError):
    """One upsert attempt for one batch failed."""

    def __init__(
        self,
        table: str,
        batch_index: int,
        message: str,
        attempt: int = 1
    ):
        self.batch_index = batch_index
        self.attempt = attempt
        self.reason = message
        super().__init__(
            operation="upsert",
            message=message,
            details={"table": table, "batch": batch_index, "attempt": attempt}
        )
