"""
Unit tests for RecordStoreService.

Run: pytest tests/unit/test_record_store_service.py -v
"""

import pytest
from unittest.mock import MagicMock

from exceptions import DatabaseError, UnknownTableError
from services.record_store_service import (
    TABLE_MAP,
    RecordStoreService,
    get_record_store_service,
    primary_key_for,
    resolve_table,
)


class TestTableMapping:

    def test_known_keys(self):
        assert resolve_table("history") == "issues"
        assert resolve_table("bomRecords") == "bom"
        assert resolve_table("issuePlanEntries") == "issue_plan_entries"

    def test_unknown_key_raises(self):
        with pytest.raises(UnknownTableError) as exc_info:
            resolve_table("spaceships")

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["table_key"] == "spaceships"

    def test_primary_keys(self):
        assert primary_key_for("users") == "username"
        assert primary_key_for("items") == "id"

    def test_every_import_target_is_mapped(self):
        for key in ("history", "items", "machines", "breakdowns", "bomRecords", "issuePlanEntries"):
            assert key in TABLE_MAP


class TestFetch:

    def test_fetch_table_returns_camel_case(self, mock_supabase):
        mock_supabase.set_table_data("items", [{"id": "IT-9", "part_number": "PN-55"}])
        service = RecordStoreService(client=mock_supabase)

        assert service.fetch_table("items") == [{"id": "IT-9", "partNumber": "PN-55"}]

    def test_fetch_table_failure_raises(self, mock_supabase):
        mock_supabase.select_errors["items"] = RuntimeError("boom")
        service = RecordStoreService(client=mock_supabase)

        with pytest.raises(DatabaseError):
            service.fetch_table("items")

    def test_fetch_all_isolates_failures(self, mock_supabase):
        mock_supabase.set_table_data("locations", [{"id": "L-1", "name": "Yard"}])
        mock_supabase.select_errors["items"] = RuntimeError("boom")
        service = RecordStoreService(client=mock_supabase)

        data = service.fetch_all(["items", "locations"])

        assert data == {"items": [], "locations": [{"id": "L-1", "name": "Yard"}]}

    def test_load_master_data(self, mock_supabase):
        mock_supabase.set_table_data("machines", [{"id": "M-1", "chassis_no": "CH-1"}])
        service = RecordStoreService(client=mock_supabase)

        master = service.load_master_data(["machines"])

        assert master.machines == [{"id": "M-1", "chassisNo": "CH-1"}]


class TestWrites:

    def test_upsert_record(self, mock_supabase):
        service = RecordStoreService(client=mock_supabase)

        result = service.upsert_record("machines", {"id": "M-1", "chassisNo": "CH-1"})

        assert result.success
        call = mock_supabase.upsert_calls[0]
        assert call["table"] == "machines"
        assert call["rows"] == [{"id": "M-1", "chassis_no": "CH-1", "status": "Working"}]

    def test_upsert_unknown_table(self, mock_supabase):
        result = RecordStoreService(client=mock_supabase).upsert_record("nope", {"id": "1"})

        assert not result.success
        assert result.message == "Unknown table"

    def test_upsert_failure_is_reported(self, mock_supabase):
        mock_supabase.upsert_errors = [RuntimeError("conflict")]

        result = RecordStoreService(client=mock_supabase).upsert_record("items", {"id": "IT-1"})

        assert result.status == "error"
        assert result.message == "conflict"

    def test_delete_record(self):
        client = MagicMock()
        service = RecordStoreService(client=client)

        result = service.delete_record("users", "ana")

        assert result.success
        client.table.assert_called_with("users")
        client.table.return_value.delete.return_value.eq.assert_called_with("username", "ana")


def test_singleton(mock_db):
    import services.record_store_service as module
    module._record_store_service = None

    assert get_record_store_service() is get_record_store_service()
    assert get_record_store_service().db is mock_db

    module._record_store_service = None
