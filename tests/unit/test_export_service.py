"""
Unit tests for ExportService.

Run: pytest tests/unit/test_export_service.py -v
"""

from datetime import datetime

import pytest
from openpyxl import load_workbook

from exceptions import UnknownImportTargetError
from models.imports import ImportTarget
from models.master_data import MasterData
from parsers.header_detector import detect_header_row, rows_from_grid
from parsers.spreadsheet_reader import read_grid
from services.export_service import EXPORTS, ExportService, get_export_service
from services.normalization_service import RowNormalizer
from tests.factories import BomRecordFactory, IssueRequestFactory


@pytest.fixture
def service():
    return ExportService()


@pytest.fixture
def populated(master_data) -> MasterData:
    master = master_data.with_records("history", [IssueRequestFactory.create(machine_id="M-1")])
    master = master.with_records("bomRecords", [BomRecordFactory.create()])
    master = master.with_records("breakdowns", [{
        "id": "BD-1", "machineId": "M-1", "machineName": "Excavator", "locationId": "L-2",
        "startTime": "2024-01-05T08:00:00", "endTime": "2024-01-05T10:30:00", "durationMinutes": 150,
        "status": "Closed"
    }])
    return master.with_records("machines", [{
        "id": "M-2", "category": "Dozer", "chassisNo": "CH-2", "status": "Down",
        "locationId": "L-1", "sectorId": "S-1", "divisionId": "D-9"
    }])


class TestBuildRows:

    def test_issue_request_projection(self, service, populated):
        headers, rows = service.build_rows("history", populated)

        assert headers == [
            "ID", "Date", "Location", "Item ID", "Item Name", "Qty", "Unit", "Machine", "Status", "Maint. Plan"
        ]
        assert rows == [[
            "IMP-1700000000000-abcde", "2024-01-05", "Warehouse A", "IT-9", "Bolt", 12, "pcs", "Excavator", "Completed", ""
        ]]

    def test_bom_projection_joins_item(self, service, populated):
        _, rows = service.build_rows(ImportTarget.BOM, populated)

        assert rows == [["Excavator", "X100", "", "IT-9", "Bolt", "PN-55", 2, "pcs", ""]]

    def test_asset_names_fall_back_to_id(self, service, populated):
        _, rows = service.build_rows("machines", populated)

        dozer = next(r for r in rows if r[0] == "M-2")
        assert dozer[7:10] == ["Warehouse A", "North", "D-9"]

    def test_breakdown_duration_in_hours(self, service, populated):
        headers, rows = service.build_rows("breakdowns", populated)

        assert rows[0][headers.index("Duration (Hrs)")] == 2.5

    def test_target_without_export(self, service, master_data):
        with pytest.raises(UnknownImportTargetError):
            service.build_rows("issuePlanEntries", master_data)


class TestWorkbook:

    def test_export_writes_styled_sheet(self, service, populated):
        output = service.export("items", populated)

        ws = load_workbook(output).active
        assert ws.title == "Current Stock"
        assert ws["A1"].value == "Item Number"
        assert ws["A1"].font.bold
        assert ws["A2"].value == "IT-9"
        assert ws.freeze_panes == "A2"

    @pytest.mark.parametrize("target", list(EXPORTS))
    def test_exported_headers_import_cleanly(self, service, populated, target):
        """Every exported column that carries data maps back to a field."""
        grid = read_grid(service.export(target, populated), filename="export.xlsx")

        assert detect_header_row(grid) == 0
        rows = rows_from_grid(grid, 0)
        normalized = RowNormalizer().normalize(rows[0], target)
        assert normalized

    def test_stock_round_trip_fields(self, service, populated):
        grid = read_grid(service.export("items", populated), filename="export.xlsx")

        row = RowNormalizer().normalize(rows_from_grid(grid, 0)[0], "items")

        assert row["id"] == "IT-9"
        assert row["name"] == "Bolt"
        assert row["partNumber"] == "PN-55"
        assert row["stockQuantity"] == 40

    def test_filename(self, service):
        assert service.filename_for("history", datetime(2024, 1, 5)) == "Issue_Requests_2024-01-05.xlsx"


def test_singleton():
    assert get_export_service() is get_export_service()
