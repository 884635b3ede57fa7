"""
Export service - write collections back out as spreadsheets.

The mirror of the import path: records are projected to flat rows with
human-readable headers. Every header is one the row normalizer accepts,
so an exported sheet can be edited and imported again.
"""

from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
import structlog

from exceptions import UnknownImportTargetError
from models.imports import ImportTarget
from models.master_data import MasterData

logger = structlog.get_logger(__name__)

Record = dict[str, Any]
Column = tuple[str, Callable[[Record, "_Lookups"], Any]]


class _Lookups:
    """id -> record maps used to print names instead of ids."""

    def __init__(self, master_data: MasterData):
        self.items = {r.get("id"): r for r in master_data.items}
        self.machines = {r.get("id"): r for r in master_data.machines}
        self.locations = {r.get("id"): r for r in master_data.locations}
        self.sectors = {r.get("id"): r for r in master_data.collection("sectors")}
        self.divisions = {r.get("id"): r for r in master_data.collection("divisions")}

    @staticmethod
    def name(table: dict[Any, Record], entity_id: Any) -> str:
        """Entity name, falling back to the raw id."""
        if not entity_id:
            return ""
        entity = table.get(entity_id)
        return (entity or {}).get("name") or entity_id


def _field(name: str, default: Any = "") -> Callable[[Record, _Lookups], Any]:
    def get(record: Record, _: _Lookups) -> Any:
        value = record.get(name)
        return default if value is None or value == "" else value
    return get


def _date(name: str) -> Callable[[Record, _Lookups], Any]:
    def get(record: Record, _: _Lookups) -> Any:
        value = record.get(name)
        if not value:
            return ""
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%Y-%m-%d")
        except ValueError:
            return value
    return get


def _duration_hours(record: Record, _: _Lookups) -> Any:
    minutes = record.get("durationMinutes")
    return round(minutes / 60, 2) if minutes else ""


ASSET_COLUMNS: list[Column] = [
    ("ID", _field("id")),
    ("Equipment Name", _field("category")),
    ("Local No", _field("machineLocalNo")),
    ("Status", _field("status")),
    ("Brand", _field("brand")),
    ("Model No", _field("modelNo")),
    ("Chassis No", _field("chassisNo")),
    ("Location", lambda r, lk: lk.name(lk.locations, r.get("locationId"))),
    ("Sector", lambda r, lk: lk.name(lk.sectors, r.get("sectorId"))),
    ("Division", lambda r, lk: lk.name(lk.divisions, r.get("divisionId"))),
    ("Main Group", _field("mainGroup")),
    ("Sub Group", _field("subGroup")),
]

BOM_COLUMNS: list[Column] = [
    ("Machine", _field("machineCategory")),
    ("Model", _field("modelNo")),
    ("Brand", _field("brand")),
    ("Item Code", _field("itemId")),
    ("Description", lambda r, lk: lk.items.get(r.get("itemId"), {}).get("name") or ""),
    ("Part No", lambda r, lk: lk.items.get(r.get("itemId"), {}).get("partNumber") or ""),
    ("Qty", _field("quantity", 0)),
    ("Unit", lambda r, lk: lk.items.get(r.get("itemId"), {}).get("unit") or ""),
    ("Maint Type", _field("maintenanceType")),
]

ISSUE_REQUEST_COLUMNS: list[Column] = [
    ("ID", _field("id")),
    ("Date", _date("timestamp")),
    ("Location", lambda r, lk: lk.name(lk.locations, r.get("locationId"))),
    ("Item ID", _field("itemId")),
    (
        "Item Name",
        lambda r, lk: (
            lk.items.get(r.get("itemId"), {}).get("fullName")
            or lk.items.get(r.get("itemId"), {}).get("name")
            or r.get("itemName")
            or ""
        ),
    ),
    ("Qty", _field("quantity", 0)),
    ("Unit", lambda r, lk: lk.items.get(r.get("itemId"), {}).get("unit") or r.get("unit") or "pcs"),
    ("Machine", lambda r, lk: lk.machines.get(r.get("machineId"), {}).get("category") or r.get("machineName") or ""),
    ("Status", _field("status")),
    ("Maint. Plan", _field("maintenancePlan")),
]

STOCK_COLUMNS: list[Column] = [
    ("Item Number", _field("id")),
    ("Description", _field("name")),
    ("Category", _field("category")),
    ("Part No", _field("partNumber")),
    ("Model No", _field("modelNo")),
    ("Unit", _field("unit")),
    ("Current Stock", _field("stockQuantity", 0)),
]

BREAKDOWN_COLUMNS: list[Column] = [
    ("ID", _field("id")),
    ("Machine", lambda r, lk: lk.machines.get(r.get("machineId"), {}).get("category") or r.get("machineName") or ""),
    ("Local No", _field("machineLocalNo")),
    ("Location", lambda r, lk: lk.name(lk.locations, r.get("locationId"))),
    ("Status", _field("status")),
    ("Failure Type", _field("failureType")),
    ("Operator", _field("operatorName")),
    ("Start Time", _field("startTime")),
    ("End Time", _field("endTime")),
    ("Duration (Hrs)", _duration_hours),
]

EXPORTS: dict[ImportTarget, tuple[str, list[Column]]] = {
    ImportTarget.ASSETS: ("Equipment", ASSET_COLUMNS),
    ImportTarget.BOM: ("BOM", BOM_COLUMNS),
    ImportTarget.ISSUE_REQUESTS: ("Issue Requests", ISSUE_REQUEST_COLUMNS),
    ImportTarget.STOCK_ITEMS: ("Current Stock", STOCK_COLUMNS),
    ImportTarget.BREAKDOWNS: ("Breakdowns", BREAKDOWN_COLUMNS),
}


class ExportService:
    """Service for generating collection export files."""

    def build_rows(
        self,
        target: Union[ImportTarget, str],
        master_data: MasterData
    ) -> tuple[list[str], list[list[Any]]]:
        """
        Project a collection to (headers, rows).

        Raises:
            UnknownImportTargetError: If the target has no export layout
        """
        try:
            key = ImportTarget(target)
            _, columns = EXPORTS[key]
        except (ValueError, KeyError):
            raise UnknownImportTargetError(str(target), valid=[t.value for t in EXPORTS])

        lookups = _Lookups(master_data)
        headers = [header for header, _ in columns]
        rows = [
            [get(record, lookups) for _, get in columns]
            for record in master_data.collection(key.value)
        ]
        return headers, rows

    def export(
        self,
        target: Union[ImportTarget, str],
        master_data: MasterData
    ) -> BytesIO:
        """
        Generate a one-sheet .xlsx for a collection.

        Returns:
            BytesIO containing the Excel file
        """
        headers, rows = self.build_rows(target, master_data)
        sheet_title, _ = EXPORTS[ImportTarget(target)]

        logger.info("generating_export", target=ImportTarget(target).value, rows=len(rows))

        wb = Workbook()
        ws = wb.active
        ws.title = sheet_title

        # Styles
        bold_font = Font(bold=True)
        header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")

        ws.append(headers)
        for cell in ws[1]:
            cell.font = bold_font
            cell.fill = header_fill

        for row in rows:
            ws.append(row)

        for index, header in enumerate(headers, start=1):
            widest = max([len(str(header))] + [len(str(row[index - 1])) for row in rows])
            ws.column_dimensions[get_column_letter(index)].width = min(max(widest + 2, 10), 50)

        ws.freeze_panes = "A2"

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output

    @staticmethod
    def filename_for(target: Union[ImportTarget, str], today: Optional[datetime] = None) -> str:
        """Download name, e.g. Issue_Requests_2024-01-05.xlsx"""
        sheet_title, _ = EXPORTS[ImportTarget(target)]
        stamp = (today or datetime.utcnow()).strftime("%Y-%m-%d")
        return f"{sheet_title.replace(' ', '_')}_{stamp}.xlsx"


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
