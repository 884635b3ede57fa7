"""
Record store: single-record access to the Supabase tables behind each
frontend collection.

Records cross this boundary in snake_case (Supabase) and leave it in
camelCase (the shape the UI and the import engine use).
"""

from typing import Any, Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError, UnknownTableError
from models.base import BaseSchema
from models.master_data import MasterData
from utils.record_mapper import from_row, to_row

logger = structlog.get_logger(__name__)


# Frontend collection key -> Supabase table
TABLE_MAP: dict[str, str] = {
    "items": "items",
    "machines": "machines",
    "locations": "locations",
    "sectors": "sectors",
    "divisions": "divisions",
    "plans": "maintenance_plans",
    "users": "users",
    "history": "issues",
    "breakdowns": "breakdowns",
    "bomRecords": "bom",
    "agriOrders": "agri_orders",
    "irrigationLogs": "irrigation_logs",
    "forecastPeriods": "forecast_periods",
    "forecastRecords": "forecast_records",
    "tasks": "maintenance_tasks",
    "schedules": "maintenance_schedules",
    "workOrders": "maintenance_work_orders",
    "assetTransfers": "asset_transfers",
    "transferHistory": "machine_transfer_history",
    "warrantyRecords": "warranty_management",
    "warrantyReceivings": "warranty_receiving_data",
    "orgStructures": "org_structure",
    "failureTypes": "failure_types",
    "issuePlanPeriods": "issue_plan_periods",
    "issuePlanEntries": "issue_plan_entries",
}


def resolve_table(table_key: str) -> str:
    """
    Map a frontend collection key to its Supabase table.

    Raises:
        UnknownTableError: If the key has no mapping
    """
    table = TABLE_MAP.get(table_key)
    if table is None:
        raise UnknownTableError(table_key)
    return table


def primary_key_for(table_key: str) -> str:
    """Conflict column for upserts."""
    return "username" if table_key == "users" else "id"


class StoreResult(BaseSchema):
    """Outcome of a single-record write."""
    status: str
    message: Optional[str] = None

    @classmethod
    def ok(cls) -> "StoreResult":
        return cls(status="success")

    @classmethod
    def failed(cls, message: str) -> "StoreResult":
        return cls(status="error", message=message)

    @property
    def success(self) -> bool:
        return self.status == "success"


class RecordStoreService:
    """
    Record-level reads and writes for every mapped collection.

    Bulk writes go through BulkPersistenceService instead.
    """

    def __init__(self, client=None):
        self.db = client if client is not None else get_supabase_client()

    # ===================
    # READ OPERATIONS
    # ===================

    def fetch_table(self, table_key: str) -> list[dict[str, Any]]:
        """
        Fetch every record of one collection.

        Raises:
            UnknownTableError: If the key has no mapping
            DatabaseError: If the query fails
        """
        table = resolve_table(table_key)
        try:
            result = self.db.table(table).select("*").execute()
        except Exception as e:
            logger.error("fetch_table_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e), details={"table": table})

        records = [from_row(row) for row in (result.data or [])]
        logger.debug("table_fetched", table=table, count=len(records))
        return records

    def fetch_all(self, keys: Optional[list[str]] = None) -> dict[str, list[dict[str, Any]]]:
        """
        Fetch every mapped collection.

        A collection whose query fails comes back empty (the failure is
        logged) so one broken table does not block the rest.

        Args:
            keys: Restrict to these collection keys (default: all mapped)
        """
        data: dict[str, list[dict[str, Any]]] = {}
        for key in keys or list(TABLE_MAP):
            try:
                data[key] = self.fetch_table(key)
            except DatabaseError as e:
                logger.error("collection_unavailable", collection=key, error=e.message)
                data[key] = []

        logger.info(
            "collections_fetched",
            collections=len(data),
            records=sum(len(v) for v in data.values())
        )
        return data

    def load_master_data(self, keys: Optional[list[str]] = None) -> MasterData:
        """Fetch collections into a MasterData snapshot."""
        return MasterData(collections=self.fetch_all(keys))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def upsert_record(self, table_key: str, record: dict[str, Any]) -> StoreResult:
        """Insert or update one record keyed by its primary key."""
        table = TABLE_MAP.get(table_key)
        if table is None:
            logger.error("unknown_table", table_key=table_key)
            return StoreResult.failed("Unknown table")

        pk = primary_key_for(table_key)
        try:
            self.db.table(table).upsert(to_row(record, table), on_conflict=pk).execute()
        except Exception as e:
            logger.error("upsert_record_failed", table=table, id=record.get(pk), error=str(e))
            return StoreResult.failed(str(e))

        logger.info("record_saved", table=table, id=record.get(pk))
        return StoreResult.ok()

    def delete_record(self, table_key: str, record_id: str) -> StoreResult:
        """Delete one record by primary key."""
        table = TABLE_MAP.get(table_key)
        if table is None:
            logger.error("unknown_table", table_key=table_key)
            return StoreResult.failed("Unknown table")

        pk = primary_key_for(table_key)
        try:
            self.db.table(table).delete().eq(pk, record_id).execute()
        except Exception as e:
            logger.error("delete_record_failed", table=table, id=record_id, error=str(e))
            return StoreResult.failed(str(e))

        logger.info("record_deleted", table=table, id=record_id)
        return StoreResult.ok()


# Singleton instance for convenience
_record_store_service: Optional[RecordStoreService] = None

def get_record_store_service() -> RecordStoreService:
    """Get or create RecordStoreService instance."""
    global _record_store_service
    if _record_store_service is None:
        _record_store_service = RecordStoreService()
    return _record_store_service
