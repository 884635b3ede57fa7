"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.master_data import (
    EntityType,
    ENTITY_COLLECTIONS,
    MasterData,
)
from models.imports import (
    ImportTarget,
    FieldKind,
    ReferencePolicy,
    SkipReason,
    FieldSpec,
    ReferenceRule,
    ImportSchema,
    ChangeSet,
    SkippedRow,
    ReconcileResult,
    PersistStatus,
    FailedBatch,
    PersistOutcome,
    PersistenceConfig,
    ImportReport,
    ImportResponse,
)

__all__ = [
    # Base
    "BaseSchema",

    # Master data
    "EntityType",
    "ENTITY_COLLECTIONS",
    "MasterData",

    # Import schemas
    "ImportTarget",
    "FieldKind",
    "ReferencePolicy",
    "SkipReason",
    "FieldSpec",
    "ReferenceRule",
    "ImportSchema",

    # Results
    "ChangeSet",
    "SkippedRow",
    "ReconcileResult",
    "PersistStatus",
    "FailedBatch",
    "PersistOutcome",
    "PersistenceConfig",
    "ImportReport",
    "ImportResponse",
]
