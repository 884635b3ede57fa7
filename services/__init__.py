"""
Business logic services.

Each service handles one stage of the import pipeline.
"""

from services.entity_resolution_service import EntityResolver
from services.normalization_service import RowNormalizer, get_row_normalizer
from services.reconciliation_service import ReconciliationService
from services.record_store_service import (
    RecordStoreService,
    get_record_store_service,
    StoreResult,
    TABLE_MAP,
    resolve_table,
)
from services.bulk_persistence_service import (
    BulkPersistenceService,
    get_bulk_persistence_service,
)
from services.import_service import ImportService, get_import_service
from services.export_service import ExportService, get_export_service

__all__ = [
    "EntityResolver",
    "RowNormalizer",
    "get_row_normalizer",
    "ReconciliationService",
    "RecordStoreService",
    "get_record_store_service",
    "StoreResult",
    "TABLE_MAP",
    "resolve_table",
    "BulkPersistenceService",
    "get_bulk_persistence_service",
    "ImportService",
    "get_import_service",
    "ExportService",
    "get_export_service",
]
