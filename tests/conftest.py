"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from typing import Generator

from models.master_data import MasterData
from tests.factories import ItemFactory, LocationFactory, MachineFactory

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data
        self.count = count if count is not None else len(self.data or [])


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None):
        self._client = client
        self._table = table
        self._data = data or []
        self._upsert_rows = None

    def select(self, *args, **kwargs):
        return self

    def upsert(self, rows, on_conflict: str = "id"):
        if isinstance(rows, dict):
            rows = [rows]
        self._upsert_rows = list(rows)
        self._client.upsert_calls.append({
            "table": self._table,
            "rows": self._upsert_rows,
            "on_conflict": on_conflict
        })
        return self

    def delete(self):
        return self

    def eq(self, column, value):
        self._client.filters.append((self._table, column, value))
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._upsert_rows is not None:
            if self._client.upsert_errors:
                error = self._client.upsert_errors.pop(0)
                if error is not None:
                    raise error
            return MockSupabaseResponse(data=self._upsert_rows)
        if self._table in self._client.select_errors:
            raise self._client.select_errors[self._table]
        return MockSupabaseResponse(data=self._data)


class MockSupabaseClient:
    """
    Mock Supabase client.

    upsert_errors is consumed one entry per upsert call: None succeeds,
    an exception instance is raised.
    """

    def __init__(self):
        self._tables: dict[str, list] = {}
        self.upsert_calls: list[dict] = []
        self.upsert_errors: list = []
        self.select_errors: dict[str, Exception] = {}
        self.filters: list[tuple] = []

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table (snake_case columns)."""
        self._tables[table_name] = data

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name, list(self._tables.get(name, [])))


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("items", [
                {"id": "IT-1", "part_number": "PN-1", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any service built with get_supabase_client() gets the mock.
    """
    with patch("services.record_store_service.get_supabase_client", return_value=mock_supabase):
        with patch("services.bulk_persistence_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def no_sleep() -> list:
    """Collects requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def master_data() -> MasterData:
    """
    Small master data snapshot.

    items: IT-9 (PN-55, Bolt), IT-10 (Nut)
    locations: L-1 Warehouse A, L-2 Workshop
    machines: M-1 Excavator (CH-001)
    """
    return MasterData(collections={
        "items": [
            ItemFactory.create(id="IT-9", part_number="PN-55", name="Bolt", stock_quantity=40),
            ItemFactory.create(id="IT-10", part_number="PN-77", name="Nut", unit="box"),
        ],
        "locations": [
            LocationFactory.create(id="L-1", name="Warehouse A"),
            LocationFactory.create(id="L-2", name="Workshop"),
        ],
        "machines": [
            MachineFactory.create(id="M-1", category="Excavator", chassis_no="CH-001", location_id="L-2"),
        ],
        "sectors": [{"id": "S-1", "name": "North"}],
        "divisions": [{"id": "D-1", "name": "Mining"}],
    })


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/targets")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("main.check_connection", return_value={"status": "unhealthy", "error": "offline"}):
        yield TestClient(app)
