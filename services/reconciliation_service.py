"""
Reconciliation of normalized rows against existing records.

For every row the service decides: update an existing record (matched by
id or natural key), add a new one (with a synthesized id), or skip it.
Inputs are never mutated; the result is a fresh ChangeSet plus the
diagnostics an operator needs (skipped rows, unmatched references).
"""

import hashlib
import random
import string
import time
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
import structlog

from config.import_targets import get_import_schema
from models.imports import (
    ChangeSet,
    ImportSchema,
    ImportTarget,
    ReconcileResult,
    ReferencePolicy,
    ReferenceRule,
    SkippedRow,
    SkipReason,
)
from services.entity_resolution_service import EntityResolver
from utils.text_utils import clean_reference, safe_str

logger = structlog.get_logger(__name__)

Record = dict[str, Any]
Key = tuple[str, ...]

ID_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
ID_SUFFIX_LENGTH = 5
DETERMINISTIC_ID_LENGTH = 12


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


# ===================
# IDS AND KEYS
# ===================

def synthesize_id(prefix: str) -> str:
    """{PREFIX}-{epoch ms}-{5 random chars}"""
    suffix = "".join(random.choices(ID_SUFFIX_ALPHABET, k=ID_SUFFIX_LENGTH))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def deterministic_id(prefix: str, key: Key) -> str:
    """Stable id derived from a natural key, so re-imports land on the same record."""
    digest = hashlib.sha1("|".join(key).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:DETERMINISTIC_ID_LENGTH]}"


def build_key(record: Mapping[str, Any], fields: Sequence[str]) -> Optional[Key]:
    """
    Case-insensitive natural key, or None when it cannot identify anything.

    Empty strings are valid key parts (a BOM line without a model number);
    a missing field, or a key made only of empty parts, is not.
    """
    if not fields:
        return None
    parts = []
    for name in fields:
        value = record.get(name)
        if value is None:
            return None
        parts.append(str(value).strip().lower())
    if not any(parts):
        return None
    return tuple(parts)


def record_keys(record: Mapping[str, Any], schema: ImportSchema) -> list[Key]:
    """Every key a stored record can be found under (base and extended)."""
    keys = []
    base = build_key(record, schema.natural_key)
    if base is not None:
        keys.append(base)
        if schema.optional_key_fields:
            extended = build_key(record, schema.natural_key + schema.optional_key_fields)
            if extended is not None:
                keys.append(extended)
    return keys


def row_key(candidate: Mapping[str, Any], supplied: Mapping[str, Any], schema: ImportSchema) -> Optional[Key]:
    """
    Key used to look a row up.

    Optional key fields only join the key when the row supplied them,
    not when they came from a default.
    """
    fields = schema.natural_key + tuple(
        f for f in schema.optional_key_fields if not _is_empty(supplied.get(f))
    )
    return build_key(candidate, fields)


# ===================
# STAGING
# ===================

class _Index:
    """Id and natural-key lookups over existing records (first record wins)."""

    def __init__(self, records: Iterable[Record], schema: ImportSchema):
        self.by_id: dict[str, Record] = {}
        self.by_key: dict[Key, Record] = {}
        for record in records:
            record_id = safe_str(record.get("id"))
            if record_id is not None:
                self.by_id.setdefault(record_id, record)
            for key in record_keys(record, schema):
                self.by_key.setdefault(key, record)


class _Staging:
    """Records emitted so far in this pass, in insertion order."""

    def __init__(self, schema: ImportSchema):
        self.schema = schema
        self.records: dict[str, Record] = {}
        self.kinds: dict[str, str] = {}
        self.by_key: dict[Key, str] = {}

    def put(self, record: Record, kind: str) -> None:
        record_id = record["id"]
        self.records[record_id] = record
        self.kinds.setdefault(record_id, kind)
        for key in record_keys(record, self.schema):
            self.by_key.setdefault(key, record_id)

    def merge(self, record_id: str, row: Record) -> None:
        merged = {**self.records[record_id], **row, "id": record_id}
        self.put(merged, self.kinds[record_id])

    def change_set(self) -> ChangeSet:
        return ChangeSet(
            to_add=[r for i, r in self.records.items() if self.kinds[i] == "add"],
            to_update=[r for i, r in self.records.items() if self.kinds[i] == "update"],
        )


# ===================
# SERVICE
# ===================

class ReconciliationService:
    """
    Classifies normalized rows into a change-set.

    Usage:
        resolver = EntityResolver(master_data)
        result = ReconciliationService(resolver).reconcile(rows, existing, "machines")
    """

    def __init__(self, resolver: EntityResolver):
        self.resolver = resolver

    def reconcile(
        self,
        rows: Sequence[Mapping[str, Any]],
        existing: Sequence[Record],
        target: Union[ImportTarget, str],
        context: Optional[Mapping[str, Any]] = None,
        row_numbers: Optional[Sequence[int]] = None
    ) -> ReconcileResult:
        """
        Reconcile rows against the existing records of one target.

        Args:
            rows: Normalized rows (canonical field -> value)
            existing: Current records of the target collection (read-only)
            target: Import target (enum or frontend key)
            context: Fixed fields merged into every row, e.g. periodId
            row_numbers: Spreadsheet row numbers for diagnostics (defaults to 1..n)

        Returns:
            ReconcileResult with the change-set, skipped rows and failed matches
        """
        schema = get_import_schema(target)
        numbers = list(row_numbers) if row_numbers is not None else range(1, len(rows) + 1)

        index = _Index(existing, schema)
        staging = _Staging(schema)
        skipped: list[SkippedRow] = []
        failed: dict[str, None] = {}

        for row_number, raw in zip(numbers, rows):
            row = {k: v for k, v in raw.items() if not _is_empty(v)}
            row.update(context or {})

            skip = self._check_identity(row, schema)
            if skip is None:
                row, skip = self._resolve_references(row, schema, failed)
            if skip is None:
                skip = self._check_required(row, schema)
            if skip is not None:
                skip.row_number = row_number
                skipped.append(skip)
                logger.debug(
                    "row_skipped",
                    target=schema.target.value,
                    row=row_number,
                    reason=skip.reason.value,
                    field=skip.field
                )
                continue

            for name in schema.transient_fields:
                row.pop(name, None)
            if schema.derive is not None:
                row = schema.derive(row)

            merged_into = self._classify(row, schema, index, staging)
            if merged_into is not None:
                skipped.append(SkippedRow(
                    row_number=row_number,
                    reason=SkipReason.DUPLICATE_ROW,
                    raw_value=merged_into
                ))
                logger.debug(
                    "row_merged_into_earlier_row",
                    target=schema.target.value,
                    row=row_number,
                    record_id=merged_into
                )

        change_set = staging.change_set()
        result = ReconcileResult(
            change_set=change_set,
            skipped=skipped,
            failed_matches=list(failed)
        )

        logger.info(
            "reconciliation_complete",
            target=schema.target.value,
            rows=len(rows),
            to_add=len(change_set.to_add),
            to_update=len(change_set.to_update),
            skipped=len(skipped),
            failed_matches=len(result.failed_matches)
        )
        return result

    # ===================
    # ROW CHECKS
    # ===================

    @staticmethod
    def _check_identity(row: Record, schema: ImportSchema) -> Optional[SkippedRow]:
        if not schema.identity_fields:
            return None
        if any(not _is_empty(row.get(name)) for name in schema.identity_fields):
            return None
        return SkippedRow(row_number=0, reason=SkipReason.MISSING_IDENTITY)

    @staticmethod
    def _check_required(row: Record, schema: ImportSchema) -> Optional[SkippedRow]:
        for name in schema.required_fields:
            if _is_empty(row.get(name)):
                return SkippedRow(row_number=0, reason=SkipReason.MISSING_REQUIRED, field=name)
        for name in schema.nonzero_fields:
            if row.get(name) == 0:
                return SkippedRow(row_number=0, reason=SkipReason.ZERO_VALUE, field=name)
        return None

    def _resolve_references(
        self,
        row: Record,
        schema: ImportSchema,
        failed: dict[str, None]
    ) -> tuple[Record, Optional[SkippedRow]]:
        """Apply every reference rule. Returns the resolved row or a skip."""
        resolved = dict(row)
        for rule in schema.references:
            raw = next(
                (resolved.get(s) for s in rule.source_fields if not _is_empty(resolved.get(s))),
                None
            )
            entity = self.resolver.find(raw, rule.entity_type) if raw is not None else None

            if entity is not None:
                resolved[rule.field] = safe_str(entity.get("id"))
                self._copy_fields(resolved, entity, rule)
                continue

            reference = clean_reference(raw)
            if reference and rule.report_misses:
                failed.setdefault(reference, None)

            if rule.policy == ReferencePolicy.SKIP_ROW:
                return resolved, SkippedRow(
                    row_number=0,
                    reason=SkipReason.UNRESOLVED_REFERENCE if reference else SkipReason.MISSING_REQUIRED,
                    field=rule.field,
                    raw_value=reference or None
                )
            if rule.policy == ReferencePolicy.SENTINEL:
                if reference:
                    resolved[rule.field] = rule.sentinel
            elif rule.policy == ReferencePolicy.NULL:
                if reference:
                    resolved[rule.field] = None
            elif rule.policy == ReferencePolicy.KEEP_RAW:
                if reference:
                    resolved[rule.field] = reference

        return resolved, None

    @staticmethod
    def _copy_fields(row: Record, entity: Mapping[str, Any], rule: ReferenceRule) -> None:
        for row_field, entity_field in rule.copy_fields:
            if _is_empty(row.get(row_field)) and not _is_empty(entity.get(entity_field)):
                row[row_field] = entity[entity_field]

    # ===================
    # CLASSIFICATION
    # ===================

    def _classify(
        self,
        row: Record,
        schema: ImportSchema,
        index: _Index,
        staging: _Staging
    ) -> Optional[str]:
        """
        Stage the row as an update, a merge into a staged record, or an add.

        Returns the staged id when the row was merged into a record an
        earlier row of this pass already produced.
        """
        defaults = {
            name: value() if callable(value) else value
            for name, value in schema.defaults.items()
        }
        # A row without any reference falls back to the sentinel like a default
        for rule in schema.references:
            if rule.policy == ReferencePolicy.SENTINEL:
                defaults.setdefault(rule.field, rule.sentinel)
        candidate = {**defaults, **row}
        key = row_key(candidate, row, schema)
        explicit_id = safe_str(row.get("id"))

        def find_by_id() -> tuple[Optional[str], Optional[Record]]:
            if explicit_id is None:
                return None, None
            if explicit_id in staging.records:
                return explicit_id, None
            return None, index.by_id.get(explicit_id)

        def find_by_key() -> tuple[Optional[str], Optional[Record]]:
            if key is None:
                return None, None
            if key in staging.by_key:
                return staging.by_key[key], None
            return None, index.by_key.get(key)

        if schema.natural_key_first:
            lookups = (find_by_key, find_by_id)
        else:
            lookups = (find_by_id, find_by_key)

        for lookup in lookups:
            staged_id, match = lookup()
            if staged_id is not None:
                staging.merge(staged_id, row)
                return staged_id
            if match is not None:
                staging.put(self._overlay(match, row, defaults), "update")
                return None

        new_id = explicit_id or self._new_id(schema, key)
        if new_id in staging.records:
            staging.merge(new_id, row)
            return new_id
        if new_id in index.by_id:
            staging.put(self._overlay(index.by_id[new_id], row, defaults), "update")
        else:
            staging.put({**candidate, "id": new_id}, "add")
        return None

    @staticmethod
    def _overlay(existing: Record, row: Record, defaults: Record) -> Record:
        """
        Shallow-overlay a row onto a copy of an existing record.

        Defaults only fill fields the existing record left empty.
        """
        merged = dict(existing)
        for name, value in defaults.items():
            if _is_empty(merged.get(name)):
                merged[name] = value
        merged.update(row)
        merged["id"] = safe_str(existing.get("id"))
        return merged

    @staticmethod
    def _new_id(schema: ImportSchema, key: Optional[Key]) -> str:
        prefix = schema.id_prefix or "IMP"
        if schema.deterministic_id and key is not None:
            return deterministic_id(prefix, key)
        return synthesize_id(prefix)

