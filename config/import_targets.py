"""
Import target schemas.

One ImportSchema per spreadsheet import target. Header aliases are written
in normalized form (no whitespace, '-', '_' or '.', lower-case), so
"Item Code", "item_code" and "ITEM-CODE" all hit the alias "itemcode".

Usage:
    from config.import_targets import get_import_schema
    schema = get_import_schema("machines")
"""

from datetime import datetime
from typing import Any, Union

from exceptions import UnknownImportTargetError
from models.imports import (
    FieldKind,
    FieldSpec,
    ImportSchema,
    ImportTarget,
    ReferencePolicy,
    ReferenceRule,
)
from models.master_data import EntityType
from utils.text_utils import now_iso


def _breakdown_duration(record: dict[str, Any]) -> dict[str, Any]:
    """Fill durationMinutes from startTime/endTime when both are present."""
    start, end = record.get("startTime"), record.get("endTime")
    if not (start and end):
        return record
    try:
        minutes = (datetime.fromisoformat(end) - datetime.fromisoformat(start)).total_seconds() / 60
    except (TypeError, ValueError):
        return record
    if minutes < 0:
        return record
    return {**record, "durationMinutes": round(minutes)}


# ===================
# ISSUE REQUESTS
# ===================

ISSUE_REQUESTS = ImportSchema(
    target=ImportTarget.ISSUE_REQUESTS,
    fields=(
        FieldSpec("id", aliases=("id", "requestid")),
        FieldSpec("timestamp", aliases=("date", "timestamp"), kind=FieldKind.DATE),
        FieldSpec("locationId", aliases=("location", "locationid", "warehouse")),
        FieldSpec("itemId", aliases=("itemid", "itemnumber", "itemcode", "partnumber")),
        FieldSpec("itemName", aliases=("itemname", "description")),
        FieldSpec("quantity", aliases=("qty", "quantity", "count"), kind=FieldKind.NUMBER),
        FieldSpec("unit", aliases=("unit",)),
        FieldSpec("machineName", aliases=("machine", "machinename", "equipment")),
        FieldSpec("machineId", aliases=("machineid", "assetid")),
        FieldSpec("status", aliases=("status",)),
        FieldSpec("maintenancePlan", aliases=("plan", "maintplan", "maintenanceplan")),
    ),
    references=(
        ReferenceRule(
            "itemId", EntityType.ITEM, ReferencePolicy.SKIP_ROW,
            copy_fields=(("itemName", "name"),),
        ),
        ReferenceRule("locationId", EntityType.LOCATION, ReferencePolicy.KEEP_RAW),
        ReferenceRule(
            "machineId", EntityType.MACHINE, ReferencePolicy.SENTINEL,
            sources=("machineId", "machineName"),
        ),
    ),
    defaults={
        "timestamp": now_iso,
        "locationId": "Unknown",
        "itemName": "Unknown Item",
        "unit": "pcs",
        "machineName": "Unknown",
        "status": "Completed",
        "maintenancePlan": "",
    },
    natural_key=("itemId", "locationId", "machineId"),
    optional_key_fields=("timestamp",),
    required_fields=("itemId", "quantity"),
    nonzero_fields=("quantity",),
    id_prefix="IMP",
)


# ===================
# STOCK ITEMS
# ===================

STOCK_ITEMS = ImportSchema(
    target=ImportTarget.STOCK_ITEMS,
    fields=(
        FieldSpec("id", aliases=("id", "itemid", "itemnumber", "itemcode", "partnumber")),
        FieldSpec("name", aliases=("name", "description")),
        FieldSpec("fullName", aliases=("fullname",)),
        FieldSpec("partNumber", aliases=("partno",)),
        FieldSpec("modelNo", aliases=("modelno",)),
        FieldSpec(
            "stockQuantity",
            aliases=("stockqty", "qty", "quantity", "count", "currentstock"),
            kind=FieldKind.NUMBER,
        ),
        FieldSpec("unit", aliases=("unit",)),
        FieldSpec("category", aliases=("category",)),
    ),
    references=(
        ReferenceRule("id", EntityType.ITEM, ReferencePolicy.KEEP_RAW, report_misses=False),
    ),
    defaults={
        "name": "New Item",
        "stockQuantity": 0,
        "unit": "pcs",
        "category": "General",
    },
    identity_fields=("id",),
)


# ===================
# ASSETS
# ===================

ASSETS = ImportSchema(
    target=ImportTarget.ASSETS,
    fields=(
        FieldSpec("id", aliases=("id", "machineid", "assetid", "entryid")),
        FieldSpec("status", aliases=("status",)),
        FieldSpec("brand", aliases=("brand", "make", "manufacturer")),
        FieldSpec("modelNo", aliases=("model", "modelno", "modelnumber", "type")),
        FieldSpec(
            "chassisNo",
            aliases=("chase", "chassis", "chaseno", "chassisno", "serial", "serialno", "sn"),
        ),
        FieldSpec("mainGroup", aliases=("maingroup", "group")),
        FieldSpec("subGroup", aliases=("subgroup",)),
        FieldSpec("machineLocalNo", aliases=("localno", "machinelocalno", "assetno")),
        # Contains patterns below are tried in this order
        FieldSpec("divisionId", contains=("division",)),
        FieldSpec("sectorId", contains=("sector",)),
        FieldSpec("locationId", contains=("location",)),
        FieldSpec(
            "category",
            aliases=("equipment", "machinename"),
            contains=("name", "description", "category"),
        ),
    ),
    references=(
        ReferenceRule("divisionId", EntityType.DIVISION, ReferencePolicy.NULL),
        ReferenceRule("sectorId", EntityType.SECTOR, ReferencePolicy.NULL),
        ReferenceRule("locationId", EntityType.LOCATION, ReferencePolicy.NULL),
    ),
    defaults={
        "category": "Unknown Machine",
        "status": "Working",
        "machineLocalNo": "",
    },
    natural_key=("chassisNo",),
    identity_fields=("id", "chassisNo", "category"),
    id_prefix="M",
)


# ===================
# BREAKDOWNS
# ===================

BREAKDOWNS = ImportSchema(
    target=ImportTarget.BREAKDOWNS,
    fields=(
        FieldSpec("id", aliases=("id", "breakdownid", "entryid")),
        FieldSpec("machineId", aliases=("machineid", "assetid")),
        FieldSpec("machineLocalNo", aliases=("localno", "machinelocalno", "assetno")),
        FieldSpec("status", aliases=("status",)),
        FieldSpec("failureType", aliases=("failuretype", "failure", "fault")),
        FieldSpec("operatorName", aliases=("operator", "operatorname")),
        FieldSpec("startTime", aliases=("start", "starttime", "startdate", "date"), kind=FieldKind.DATE),
        FieldSpec("endTime", aliases=("end", "endtime", "enddate"), kind=FieldKind.DATE),
        FieldSpec("locationId", contains=("location",)),
        FieldSpec(
            "machineName",
            aliases=("equipment", "machinename", "machine"),
            contains=("name", "description", "category"),
        ),
    ),
    references=(
        ReferenceRule("locationId", EntityType.LOCATION, ReferencePolicy.NULL),
        ReferenceRule(
            "machineId", EntityType.MACHINE, ReferencePolicy.SENTINEL,
            sources=("machineId", "machineName"),
            copy_fields=(
                ("machineName", "category"),
                ("machineLocalNo", "machineLocalNo"),
                ("locationId", "locationId"),
            ),
        ),
    ),
    defaults={
        "machineName": "Unknown Machine",
        "status": "Open",
    },
    natural_key=("machineId", "startTime"),
    identity_fields=("id", "machineId", "machineName", "startTime"),
    id_prefix="BD",
    derive=_breakdown_duration,
)


# ===================
# BILL OF MATERIALS
# ===================

BOM = ImportSchema(
    target=ImportTarget.BOM,
    fields=(
        FieldSpec("id", aliases=("id", "bomid")),
        FieldSpec("machineCategory", aliases=("machinename", "equipname", "machine"), contains=("machine",)),
        FieldSpec("brand", aliases=("brand", "make")),
        FieldSpec("modelNo", aliases=("modelno", "modelnumber", "model"), contains=("model",)),
        FieldSpec("itemId", aliases=("itemid", "itemcode", "partnumber", "code", "item")),
        FieldSpec("quantity", aliases=("quantity", "qty", "count"), kind=FieldKind.NUMBER),
        FieldSpec("maintenanceType", aliases=("mainttype", "maintenancetype")),
    ),
    references=(
        ReferenceRule("itemId", EntityType.ITEM, ReferencePolicy.SKIP_ROW),
    ),
    defaults={
        "machineCategory": "Unknown",
        "modelNo": "",
    },
    natural_key=("machineCategory", "modelNo", "itemId"),
    natural_key_first=True,
    required_fields=("itemId",),
    id_prefix="BOM",
    deterministic_id=True,
    row_index_field="sortOrder",
)


# ===================
# ISSUE PLAN ENTRIES
# ===================

ISSUE_PLAN_ENTRIES = ImportSchema(
    target=ImportTarget.ISSUE_PLAN_ENTRIES,
    fields=(
        FieldSpec("id", aliases=("id",)),
        FieldSpec("locationId", aliases=("location", "locationid")),
        FieldSpec("itemId", aliases=("itemcode", "itemid")),
        FieldSpec("itemName", aliases=("itemname",)),
        FieldSpec("machineCount", aliases=("machinecount", "machines"), kind=FieldKind.NUMBER),
        FieldSpec("forecastQuantity", aliases=("forecast", "forecastqty", "forecastquantity"), kind=FieldKind.NUMBER),
        FieldSpec("notes", aliases=("notes", "note")),
    ),
    references=(
        ReferenceRule("locationId", EntityType.LOCATION, ReferencePolicy.SKIP_ROW),
        ReferenceRule(
            "itemId", EntityType.ITEM, ReferencePolicy.SKIP_ROW,
            sources=("itemId", "itemName"),
            copy_fields=(("actualQuantity", "stockQuantity"),),
        ),
    ),
    defaults={
        "sectorId": "",
        "divisionId": "",
        "machineCount": 0,
        "forecastQuantity": 0,
        "notes": "Imported",
        "lastUpdated": now_iso,
    },
    natural_key=("periodId", "locationId", "itemId"),
    required_fields=("periodId", "locationId", "itemId"),
    transient_fields=("itemName",),
    id_prefix="PLAN",
)


IMPORT_SCHEMAS: dict[ImportTarget, ImportSchema] = {
    schema.target: schema
    for schema in (ISSUE_REQUESTS, STOCK_ITEMS, ASSETS, BREAKDOWNS, BOM, ISSUE_PLAN_ENTRIES)
}


def get_import_schema(target: Union[ImportTarget, str]) -> ImportSchema:
    """
    Look up the schema for an import target.

    Accepts the enum or its frontend key ("history", "machines", ...).

    Raises:
        UnknownImportTargetError: If the key is not a supported target
    """
    try:
        key = ImportTarget(target)
    except ValueError:
        raise UnknownImportTargetError(str(target), valid=[t.value for t in ImportTarget])
    return IMPORT_SCHEMAS[key]
