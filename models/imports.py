"""
Spreadsheet import schemas and results.

Declarative types describe how a spreadsheet maps onto one import target
(see config/import_targets.py for the tables themselves). Pydantic models
carry the reconciliation and persistence results back to callers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import Field

from models.base import BaseSchema
from models.master_data import EntityType


class ImportTarget(str, Enum):
    """Import targets, keyed by the frontend collection they feed."""
    ISSUE_REQUESTS = "history"
    STOCK_ITEMS = "items"
    ASSETS = "machines"
    BREAKDOWNS = "breakdowns"
    BOM = "bomRecords"
    ISSUE_PLAN_ENTRIES = "issuePlanEntries"


class FieldKind(str, Enum):
    """How a cell value is coerced."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


class ReferencePolicy(str, Enum):
    """What happens when a reference does not resolve."""
    SKIP_ROW = "skip_row"       # Row cannot be reconciled
    SENTINEL = "sentinel"       # Substitute a placeholder ("Unknown")
    NULL = "null"               # Leave the field empty
    KEEP_RAW = "keep_raw"       # Keep the literal spreadsheet value


class SkipReason(str, Enum):
    UNRESOLVED_REFERENCE = "unresolved_reference"
    MISSING_IDENTITY = "missing_identity"
    MISSING_REQUIRED = "missing_required"
    ZERO_VALUE = "zero_value"
    # Row folded into a record an earlier row of the same sheet produced
    DUPLICATE_ROW = "duplicate_row"


# ===================
# DECLARATIVE SCHEMA
# ===================

@dataclass(frozen=True)
class FieldSpec:
    """
    One canonical field and the headers that feed it.

    aliases are compared against the normalized header exactly;
    contains patterns are substring matches tried after every alias.
    """
    name: str
    aliases: tuple[str, ...] = ()
    contains: tuple[str, ...] = ()
    kind: FieldKind = FieldKind.TEXT


@dataclass(frozen=True)
class ReferenceRule:
    """
    A field that holds a free-text reference to a master entity.

    The raw reference is read from the first non-empty of `sources`
    (defaults to the field itself); the resolved id is written to `field`.
    `copy_fields` pulls attributes from the resolved entity into the row
    when the row left them empty (row field -> entity field).
    With report_misses off, a miss is not listed as a failed match.
    """
    field: str
    entity_type: EntityType
    policy: ReferencePolicy
    sources: tuple[str, ...] = ()
    sentinel: str = "Unknown"
    copy_fields: tuple[tuple[str, str], ...] = ()
    report_misses: bool = True

    @property
    def source_fields(self) -> tuple[str, ...]:
        return self.sources or (self.field,)


@dataclass(frozen=True)
class ImportSchema:
    """Everything the normalizer and reconciler need to know about a target."""
    target: ImportTarget
    fields: tuple[FieldSpec, ...]
    references: tuple[ReferenceRule, ...] = ()
    # Values (or zero-arg callables) filled into absent fields
    defaults: dict[str, Any] = field(default_factory=dict)
    natural_key: tuple[str, ...] = ()
    # Appended to the natural key only when the row supplied them
    optional_key_fields: tuple[str, ...] = ()
    natural_key_first: bool = False
    # At least one must be supplied by the row
    identity_fields: tuple[str, ...] = ()
    # Every one must be present after resolution
    required_fields: tuple[str, ...] = ()
    # Present but 0 means the row carries nothing to record
    nonzero_fields: tuple[str, ...] = ()
    id_prefix: Optional[str] = None
    deterministic_id: bool = False
    row_index_field: Optional[str] = None
    derive: Optional[Callable[[dict[str, Any]], dict[str, Any]]] = None
    # Read from the sheet for lookups, never persisted
    transient_fields: tuple[str, ...] = ()

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


# ===================
# RESULTS
# ===================

class ChangeSet(BaseSchema):
    """
    Output of reconciliation.

    Every record in to_update already exists by id; no record in to_add does.
    No id appears twice across both lists.
    """
    to_add: list[dict[str, Any]] = Field(default_factory=list)
    to_update: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.to_add) + len(self.to_update)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def records(self) -> list[dict[str, Any]]:
        """Combined record list handed to persistence (adds first)."""
        return [*self.to_add, *self.to_update]


class SkippedRow(BaseSchema):
    """
    A data row excluded from the change-set.

    DUPLICATE_ROW entries are the exception: their values were merged into
    the record named by raw_value.
    """
    row_number: int = Field(description="1-based data row number (after the header)")
    reason: SkipReason
    field: Optional[str] = None
    raw_value: Optional[str] = None


class ReconcileResult(BaseSchema):
    """Change-set plus the per-row diagnostics gathered while building it."""
    change_set: ChangeSet = Field(default_factory=ChangeSet)
    skipped: list[SkippedRow] = Field(default_factory=list)
    failed_matches: list[str] = Field(
        default_factory=list,
        description="Unmatched reference strings, deduplicated, in first-seen order"
    )


class PersistStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class FailedBatch(BaseSchema):
    """A batch that exhausted its retries."""
    batch_index: int = Field(ge=1, description="1-based batch number")
    record_count: int = Field(ge=0)
    error: str


class PersistOutcome(BaseSchema):
    """Result of a bulk upsert."""
    status: PersistStatus
    table: Optional[str] = None
    succeeded_count: int = 0
    total_count: int = 0
    failed_batches: list[FailedBatch] = Field(default_factory=list)
    message: str = ""


class PersistenceConfig(BaseSchema):
    """
    Tuning for the bulk persistence gateway.

    Passed explicitly into BulkPersistenceService.
    """
    batch_size: int = Field(default=100, ge=1)
    max_retries: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)
    batch_delay_seconds: float = Field(default=0.2, ge=0)

    @classmethod
    def from_settings(cls, settings) -> "PersistenceConfig":
        """Build from application Settings."""
        return cls(
            batch_size=settings.import_batch_size,
            max_retries=settings.import_max_retries,
            retry_backoff_seconds=settings.import_retry_backoff_seconds,
            batch_delay_seconds=settings.import_batch_delay_seconds,
        )


class ImportReport(BaseSchema):
    """Operator-facing summary of one spreadsheet import."""
    target: ImportTarget
    header_row: int = Field(ge=0, description="0-based index of the detected header row")
    rows_read: int = 0
    added: int = 0
    updated: int = 0
    skipped: list[SkippedRow] = Field(default_factory=list)
    failed_matches: list[str] = Field(default_factory=list)
    success: bool = True
    message: str = ""
    change_set: ChangeSet = Field(default_factory=ChangeSet)
    outcome: Optional[PersistOutcome] = None


class ImportResponse(BaseSchema):
    """API response for a spreadsheet upload (the change-set itself is not echoed)."""
    target: ImportTarget
    header_row: int
    rows_read: int
    added: int
    updated: int
    skipped_count: int
    duplicate_count: int = 0
    skipped: list[SkippedRow] = Field(default_factory=list)
    failed_matches: list[str] = Field(default_factory=list)
    success: bool
    dry_run: bool = False
    message: str
    outcome: Optional[PersistOutcome] = None

    @classmethod
    def from_report(cls, report: ImportReport, dry_run: bool = False) -> "ImportResponse":
        duplicates = sum(1 for s in report.skipped if s.reason == SkipReason.DUPLICATE_ROW)
        return cls(
            target=report.target,
            header_row=report.header_row,
            rows_read=report.rows_read,
            added=report.added,
            updated=report.updated,
            skipped_count=len(report.skipped) - duplicates,
            duplicate_count=duplicates,
            skipped=report.skipped,
            failed_matches=report.failed_matches,
            success=report.success,
            dry_run=dry_run,
            message=report.message,
            outcome=report.outcome,
        )
