"""
Pytest configuration and fixtures for the Crisis Risk API tests.

Provides a chainable in-memory stand-in for the Supabase client so no test
makes real network calls.
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
import os

# Set environment variables before importing main
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["RATE_LIMIT_DEFAULT"] = "1000/minute"
os.environ["RATE_LIMIT_CRISIS"] = "1000/minute"
os.environ["RATE_LIMIT_DATA_ACCESS"] = "1000/minute"

# Import app after setting env vars
from main import app


PATIENT_ID = "123e4567-e89b-12d3-a456-426614174000"
EVALUATOR_ID = "223e4567-e89b-12d3-a456-426614174001"


def iso_days_ago(days: float, now: datetime = None) -> str:
    """ISO-8601 timestamp ``days`` before ``now`` (UTC now by default)."""
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days)).isoformat()


class MockQueryBuilder:
    """
    Mock for the Supabase query builder that supports method chaining.

    Filters are recorded, not applied: ``execute()`` returns the rows the
    test configured for the table. Inserts echo the row back with an id.

    Args:
        client: Owning MockSupabaseClient (holds data, errors and call log)
        table_name: Table this builder was created for
    """

    def __init__(self, client, table_name):
        self.client = client
        self.table_name = table_name
        self.calls = []
        self._insert_payload = None
        client.queries.append(self)

    def _record(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def eq(self, *args, **kwargs):
        return self._record("eq", *args, **kwargs)

    def gte(self, *args, **kwargs):
        return self._record("gte", *args, **kwargs)

    def gt(self, *args, **kwargs):
        return self._record("gt", *args, **kwargs)

    def in_(self, *args, **kwargs):
        return self._record("in_", *args, **kwargs)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args, **kwargs):
        return self._record("limit", *args, **kwargs)

    def insert(self, payload, *args, **kwargs):
        self._insert_payload = payload
        return self._record("insert", payload, *args, **kwargs)

    def execute(self):
        error = self.client.errors.get(self.table_name)
        if error is not None:
            raise error

        response = MagicMock()
        if self._insert_payload is not None:
            if self.client.insert_returns_empty:
                response.data = []
                return response
            row = {"id": f"prediction-{len(self.client.inserted) + 1}", "is_active": True}
            row.update(self._insert_payload)
            self.client.inserted.append(row)
            response.data = [row]
            return response

        response.data = list(self.client.tables.get(self.table_name, []))
        return response

    def filters(self, method):
        return [args for name, args, _ in self.calls if name == method]


class MockSupabaseClient:
    """
    Minimal synchronous Supabase client double.

    Attributes:
        tables: table name -> rows returned by select queries
        errors: table name -> exception raised by execute()
        inserted: rows written through insert()
        queries: every query builder created, in order
    """

    def __init__(self, tables=None):
        self.tables = tables or {}
        self.errors = {}
        self.inserted = []
        self.queries = []
        self.insert_returns_empty = False

    def table(self, name):
        return MockQueryBuilder(self, name)

    def queries_for(self, name):
        return [q for q in self.queries if q.table_name == name]


@pytest.fixture
def mock_supabase():
    """Empty mock Supabase client; tests fill ``tables``/``errors`` as needed."""
    return MockSupabaseClient()


@pytest.fixture
def client(mock_supabase):
    """
    Test client with the Supabase dependency overridden and rate limiter
    counters cleared.
    """
    from api.dependencies import get_supabase_client
    from api.rate_limiter import limiter

    # slowapi's MemoryStorage has no public API to clear all counters
    limiter._storage.storage.clear()

    app.dependency_overrides.clear()
    app.dependency_overrides[get_supabase_client] = lambda: mock_supabase

    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
