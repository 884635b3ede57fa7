"""
Unit tests for BulkPersistenceService.

Run: pytest tests/unit/test_bulk_persistence_service.py -v
"""

import pytest
from unittest.mock import MagicMock

from models.imports import ChangeSet, PersistenceConfig, PersistStatus
from services.bulk_persistence_service import BulkPersistenceService


def make_records(count: int) -> list[dict]:
    return [{"id": f"BOM-{i}", "machineCategory": "Loader", "itemId": f"IT-{i}"} for i in range(count)]


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def service(mock_supabase, sleeps):
    config = PersistenceConfig(
        batch_size=100,
        max_retries=3,
        retry_backoff_seconds=1.0,
        batch_delay_seconds=0.2
    )
    return BulkPersistenceService(client=mock_supabase, config=config, sleep=sleeps.append)


class TestPersistSuccess:
    """Tests for the all-batches-succeed path."""

    def test_splits_into_batches(self, service, mock_supabase):
        outcome = service.persist("bomRecords", make_records(250))

        assert outcome.status == PersistStatus.SUCCESS
        assert outcome.table == "bom"
        assert outcome.succeeded_count == 250
        assert outcome.total_count == 250
        assert [len(c["rows"]) for c in mock_supabase.upsert_calls] == [100, 100, 50]
        assert outcome.message == "Uploaded 250/250 records to bom"

    def test_rows_are_snake_case_with_conflict_key(self, service, mock_supabase):
        service.persist("bomRecords", make_records(1))

        call = mock_supabase.upsert_calls[0]
        assert call["table"] == "bom"
        assert call["on_conflict"] == "id"
        assert call["rows"][0] == {"id": "BOM-0", "machine_category": "Loader", "item_id": "IT-0"}

    def test_users_conflict_on_username(self, service, mock_supabase):
        service.persist("users", [{"username": "ana", "name": "Ana"}])

        assert mock_supabase.upsert_calls[0]["on_conflict"] == "username"

    def test_change_set_adds_before_updates(self, service, mock_supabase):
        change_set = ChangeSet(to_add=[{"id": "new"}], to_update=[{"id": "old"}])

        service.persist("bomRecords", change_set)

        assert [r["id"] for r in mock_supabase.upsert_calls[0]["rows"]] == ["new", "old"]

    def test_delay_only_between_successful_batches(self, service, sleeps):
        service.persist("bomRecords", make_records(250))

        assert sleeps == [0.2, 0.2]

    def test_empty_input_is_success(self, service, mock_supabase):
        outcome = service.persist("bomRecords", [])

        assert outcome.status == PersistStatus.SUCCESS
        assert outcome.succeeded_count == 0
        assert mock_supabase.upsert_calls == []

    def test_count_falls_back_to_batch_size_when_no_data(self, sleeps):
        client = MagicMock()
        client.table.return_value.upsert.return_value.execute.return_value.data = None
        service = BulkPersistenceService(client=client, config=PersistenceConfig(), sleep=sleeps.append)

        outcome = service.persist("items", make_records(3))

        assert outcome.succeeded_count == 3


class TestPersistFailures:
    """Tests for retries and partial outcomes."""

    def test_failed_batch_does_not_stop_later_batches(self, service, mock_supabase):
        # batch 1 ok, batch 2 fails three times, batch 3 ok
        boom = RuntimeError("timeout")
        mock_supabase.upsert_errors = [None, boom, boom, boom, None]

        outcome = service.persist("bomRecords", make_records(250))

        assert outcome.status == PersistStatus.PARTIAL
        assert outcome.succeeded_count == 150
        assert outcome.total_count == 250
        assert len(outcome.failed_batches) == 1
        failed = outcome.failed_batches[0]
        assert failed.batch_index == 2
        assert failed.record_count == 100
        assert failed.error == "timeout"
        assert outcome.message == "150/250 uploaded. 1 batches failed."
        assert len(mock_supabase.upsert_calls) == 5

    def test_second_of_three_batches_failing_leaves_200(self, mock_supabase, sleeps):
        config = PersistenceConfig(batch_size=100, max_retries=3)
        service = BulkPersistenceService(client=mock_supabase, config=config, sleep=sleeps.append)
        boom = RuntimeError("503")
        mock_supabase.upsert_errors = [None, boom, boom, boom, None]

        outcome = service.persist("history", make_records(300))

        assert outcome.status == PersistStatus.PARTIAL
        assert outcome.succeeded_count == 200
        assert [b.batch_index for b in outcome.failed_batches] == [2]

    def test_linear_backoff_without_sleep_after_last_attempt(self, service, mock_supabase, sleeps):
        boom = RuntimeError("down")
        mock_supabase.upsert_errors = [boom, boom, boom]

        service.persist("bomRecords", make_records(10))

        assert sleeps == [1.0, 2.0]

    def test_retry_then_success(self, service, mock_supabase, sleeps):
        mock_supabase.upsert_errors = [RuntimeError("blip"), None]

        outcome = service.persist("bomRecords", make_records(10))

        assert outcome.status == PersistStatus.SUCCESS
        assert outcome.succeeded_count == 10
        assert sleeps == [1.0]

    def test_all_batches_failing_is_partial(self, service, mock_supabase):
        mock_supabase.upsert_errors = [RuntimeError("down")] * 3

        outcome = service.persist("bomRecords", make_records(10))

        assert outcome.status == PersistStatus.PARTIAL
        assert outcome.succeeded_count == 0

    def test_unknown_table_is_error(self, service, mock_supabase):
        outcome = service.persist("spaceships", make_records(5))

        assert outcome.status == PersistStatus.ERROR
        assert "spaceships" in outcome.message
        assert mock_supabase.upsert_calls == []


class TestProgress:
    """Tests for progress callbacks."""

    def test_progress_sequence(self, service, mock_supabase):
        calls = []

        service.persist("bomRecords", make_records(150), on_progress=lambda *a: calls.append(a))

        assert calls == [
            (0, 150, 1, 2),
            (100, 150, 1, 2),
            (100, 150, 2, 2),
            (150, 150, 2, 2),
            (150, 150, 2, 2),
        ]

    def test_progress_skips_after_failed_batch(self, service, mock_supabase):
        calls = []
        mock_supabase.upsert_errors = [RuntimeError("x")] * 3

        service.persist("bomRecords", make_records(10), on_progress=lambda *a: calls.append(a))

        assert calls == [(0, 10, 1, 1), (0, 10, 1, 1)]
