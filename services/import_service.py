"""
Spreadsheet import service.

Runs the whole import cycle for one file:
read grid -> detect header -> normalize rows -> reconcile -> persist,
and builds the operator summary shown after the import.
"""

from io import BytesIO
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union
import structlog

from config import settings
from config.import_targets import get_import_schema
from exceptions import EmptyInputError
from models.imports import (
    ChangeSet,
    ImportReport,
    ImportTarget,
    PersistStatus,
    SkippedRow,
    SkipReason,
)
from models.master_data import ENTITY_COLLECTIONS, MasterData
from parsers.header_detector import detect_header_row, rows_from_grid
from parsers.spreadsheet_reader import read_grid
from services.bulk_persistence_service import (
    BulkPersistenceService,
    ProgressCallback,
    get_bulk_persistence_service,
)
from services.entity_resolution_service import EntityResolver
from services.normalization_service import RowNormalizer, get_row_normalizer
from services.reconciliation_service import ReconciliationService
from services.record_store_service import RecordStoreService, get_record_store_service

logger = structlog.get_logger(__name__)

NO_VALID_ROWS_MESSAGE = (
    "No valid rows found. Please check your column headers "
    "and ensure Item Codes match your Master Data."
)


def build_summary(
    change_set: ChangeSet,
    skipped: Sequence[SkippedRow],
    failed_matches: Sequence[str],
    limit: int = 10
) -> str:
    """
    Operator-facing summary of a reconciliation.

    Lists at most `limit` unmatched references when something was imported,
    and all of them when nothing was. Rows merged into an earlier row of
    the sheet are counted apart from skipped rows.
    """
    if change_set.is_empty:
        message = NO_VALID_ROWS_MESSAGE
        if failed_matches:
            message += f"\n\nItems not found: {', '.join(failed_matches)}"
        return message

    message = f"Successfully processed {change_set.total} rows."
    duplicates = sum(1 for s in skipped if s.reason == SkipReason.DUPLICATE_ROW)
    excluded = len(skipped) - duplicates
    if excluded:
        message += f"\n\n{excluded} rows were skipped."
    if duplicates:
        message += f"\n\n{duplicates} duplicate rows were merged into earlier rows."
    if failed_matches:
        shown = "\n· ".join(failed_matches[:limit])
        message += f"\n\nFailed to match these references:\n· {shown}"
        if len(failed_matches) > limit:
            message += f"\n...and {len(failed_matches) - limit} more"
        message += "\n\nPlease ensure these codes exist in Master Data."
    return message


class ImportService:
    """
    Orchestrates spreadsheet imports.

    Collaborators default to the module singletons; tests pass their own.
    """

    def __init__(
        self,
        store: Optional[RecordStoreService] = None,
        persistence: Optional[BulkPersistenceService] = None,
        normalizer: Optional[RowNormalizer] = None
    ):
        self.store = store or get_record_store_service()
        self.persistence = persistence or get_bulk_persistence_service()
        self.normalizer = normalizer or get_row_normalizer()

    # ===================
    # MASTER DATA
    # ===================

    def load_master_data(self, target: Union[ImportTarget, str]) -> MasterData:
        """Fetch reference collections plus the target's own collection."""
        key = get_import_schema(target).target.value
        keys = list(dict.fromkeys([*ENTITY_COLLECTIONS.values(), key]))
        return self.store.load_master_data(keys)

    # ===================
    # IMPORT
    # ===================

    def reconcile_grid(
        self,
        grid: Sequence[Sequence[Any]],
        target: Union[ImportTarget, str],
        master_data: MasterData,
        context: Optional[Mapping[str, Any]] = None
    ) -> ImportReport:
        """
        Turn a raw cell grid into a reconciled change-set (no writes).

        Raises:
            EmptyInputError: If the grid holds no data rows below the header
        """
        schema = get_import_schema(target)

        header_index = detect_header_row(grid, scan_rows=settings.header_scan_rows)
        raw_rows = rows_from_grid(grid, header_index)
        if not raw_rows:
            raise EmptyInputError("No data rows found below the header row")

        numbered = self.normalizer.normalize_rows(raw_rows, schema.target)
        resolver = EntityResolver(master_data)
        result = ReconciliationService(resolver).reconcile(
            [row for _, row in numbered],
            master_data.collection(schema.target.value),
            schema.target,
            context=context,
            row_numbers=[number for number, _ in numbered]
        )

        change_set = result.change_set
        return ImportReport(
            target=schema.target,
            header_row=header_index,
            rows_read=len(raw_rows),
            added=len(change_set.to_add),
            updated=len(change_set.to_update),
            skipped=result.skipped,
            failed_matches=result.failed_matches,
            success=not change_set.is_empty,
            message=build_summary(
                change_set,
                result.skipped,
                result.failed_matches,
                limit=settings.failed_match_display_limit
            ),
            change_set=change_set,
        )

    def import_file(
        self,
        file: Union[str, Path, BytesIO, bytes],
        target: Union[ImportTarget, str],
        filename: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
        dry_run: bool = False,
        master_data: Optional[MasterData] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> ImportReport:
        """
        Import one spreadsheet into a target collection.

        Args:
            file: Path, BytesIO or raw bytes
            target: Import target (enum or frontend key)
            filename: Upload name (picks CSV vs Excel reader)
            context: Fixed fields for every row (periodId, updatedBy)
            dry_run: Reconcile only, skip persistence
            master_data: Snapshot to reconcile against (fetched when omitted)
            on_progress: Forwarded to the bulk persistence gateway

        Returns:
            ImportReport; report.outcome is set when records were written
        """
        schema = get_import_schema(target)
        logger.info(
            "import_started",
            target=schema.target.value,
            filename=filename,
            dry_run=dry_run
        )

        grid = read_grid(file, filename=filename)
        if master_data is None:
            master_data = self.load_master_data(schema.target)

        report = self.reconcile_grid(grid, schema.target, master_data, context=context)

        if dry_run or report.change_set.is_empty:
            logger.info(
                "import_reconciled",
                target=schema.target.value,
                added=report.added,
                updated=report.updated,
                skipped=len(report.skipped),
                dry_run=dry_run
            )
            return report

        outcome = self.persistence.persist(
            schema.target.value,
            report.change_set,
            on_progress=on_progress
        )
        report.outcome = outcome
        report.success = outcome.status == PersistStatus.SUCCESS
        if outcome.status != PersistStatus.SUCCESS:
            report.message += f"\n\n{outcome.message}"

        logger.info(
            "import_complete",
            target=schema.target.value,
            added=report.added,
            updated=report.updated,
            skipped=len(report.skipped),
            status=outcome.status.value,
            succeeded=outcome.succeeded_count
        )
        return report


# Singleton instance for convenience
_import_service: Optional[ImportService] = None

def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
