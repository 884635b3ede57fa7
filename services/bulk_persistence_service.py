"""
Bulk persistence gateway.

Upserts a change-set into one Supabase table in fixed-size batches.
Each batch is retried with linear backoff; a batch that exhausts its
retries is recorded and the remaining batches still run, so one bad
batch never aborts a whole import.

Usage:
    service = BulkPersistenceService(client, PersistenceConfig(batch_size=100))
    outcome = service.persist("bomRecords", change_set, on_progress=print)
"""

import time
from typing import Any, Callable, Optional, Sequence, Union
import structlog

from config import get_supabase_client, settings
from exceptions import BatchPersistenceError, UnknownTableError
from models.imports import (
    ChangeSet,
    FailedBatch,
    PersistenceConfig,
    PersistOutcome,
    PersistStatus,
)
from services.record_store_service import primary_key_for, resolve_table
from utils.record_mapper import to_row

logger = structlog.get_logger(__name__)

# (current, total, batch_index, batch_total)
ProgressCallback = Callable[[int, int, int, int], None]


class BulkPersistenceService:
    """
    Batched, retried upserts.

    Runs sequentially: one batch in flight at a time, in input order.
    """

    def __init__(
        self,
        client=None,
        config: Optional[PersistenceConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.db = client if client is not None else get_supabase_client()
        self.config = config or PersistenceConfig.from_settings(settings)
        self._sleep = sleep

    def persist(
        self,
        table_key: str,
        records: Union[ChangeSet, Sequence[dict[str, Any]]],
        on_progress: Optional[ProgressCallback] = None
    ) -> PersistOutcome:
        """
        Upsert records into the table behind a frontend collection key.

        Args:
            table_key: Frontend collection key (e.g. "bomRecords")
            records: A ChangeSet (adds then updates) or a plain record list
            on_progress: Called before each batch, after each successful
                batch, and once at the end

        Returns:
            PersistOutcome. status is "error" only when nothing could start.
        """
        try:
            table = resolve_table(table_key)
        except UnknownTableError as e:
            logger.error("bulk_upsert_unknown_table", table_key=table_key)
            return PersistOutcome(status=PersistStatus.ERROR, message=e.message)

        items = records.records() if isinstance(records, ChangeSet) else list(records)
        total = len(items)
        if total == 0:
            return PersistOutcome(
                status=PersistStatus.SUCCESS,
                table=table,
                message=f"Nothing to upload to {table}"
            )

        pk = primary_key_for(table_key)
        size = self.config.batch_size
        batch_total = (total + size - 1) // size
        succeeded = 0
        failed_batches: list[FailedBatch] = []

        logger.info("bulk_upsert_started", table=table, records=total, batches=batch_total)

        for batch_index, start in enumerate(range(0, total, size), start=1):
            chunk = items[start:start + size]
            rows = [to_row(record, table) for record in chunk]

            if on_progress:
                on_progress(succeeded, total, batch_index, batch_total)

            try:
                succeeded += self._upsert_with_retry(table, pk, rows, batch_index, batch_total)
            except BatchPersistenceError as e:
                failed_batches.append(FailedBatch(
                    batch_index=batch_index,
                    record_count=len(chunk),
                    error=e.reason
                ))
                continue

            if on_progress:
                on_progress(succeeded, total, batch_index, batch_total)

            if start + size < total:
                self._sleep(self.config.batch_delay_seconds)

        if on_progress:
            on_progress(succeeded, total, batch_total, batch_total)

        if failed_batches:
            logger.error(
                "bulk_upsert_partial",
                table=table,
                succeeded=succeeded,
                total=total,
                failed_batches=[b.batch_index for b in failed_batches]
            )
            return PersistOutcome(
                status=PersistStatus.PARTIAL,
                table=table,
                succeeded_count=succeeded,
                total_count=total,
                failed_batches=failed_batches,
                message=f"{succeeded}/{total} uploaded. {len(failed_batches)} batches failed."
            )

        logger.info("bulk_upsert_complete", table=table, succeeded=succeeded, total=total)
        return PersistOutcome(
            status=PersistStatus.SUCCESS,
            table=table,
            succeeded_count=succeeded,
            total_count=total,
            message=f"Uploaded {succeeded}/{total} records to {table}"
        )

    def _upsert_with_retry(
        self,
        table: str,
        pk: str,
        rows: list[dict[str, Any]],
        batch_index: int,
        batch_total: int
    ) -> int:
        """
        Upsert one batch, retrying on failure.

        Returns:
            Number of rows the store acknowledged

        Raises:
            BatchPersistenceError: After the last attempt fails
        """
        max_retries = self.config.max_retries
        attempt = 0
        while True:
            attempt += 1
            try:
                result = self.db.table(table).upsert(rows, on_conflict=pk).execute()
            except Exception as e:
                if attempt >= max_retries:
                    logger.error(
                        "bulk_upsert_batch_failed",
                        table=table,
                        batch=batch_index,
                        batches=batch_total,
                        attempts=attempt,
                        error=str(e)
                    )
                    raise BatchPersistenceError(table, batch_index, str(e), attempt=attempt)
                logger.warning(
                    "bulk_upsert_batch_retry",
                    table=table,
                    batch=batch_index,
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(e)
                )
                self._sleep(attempt * self.config.retry_backoff_seconds)
                continue

            count = len(result.data) if result.data is not None else len(rows)
            logger.debug(
                "bulk_upsert_batch_done",
                table=table,
                batch=batch_index,
                batches=batch_total,
                count=count
            )
            return count


# Singleton instance for convenience
_bulk_persistence_service: Optional[BulkPersistenceService] = None

def get_bulk_persistence_service() -> BulkPersistenceService:
    """Get or create BulkPersistenceService instance."""
    global _bulk_persistence_service
    if _bulk_persistence_service is None:
        _bulk_persistence_service = BulkPersistenceService()
    return _bulk_persistence_service
