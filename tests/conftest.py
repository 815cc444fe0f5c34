"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Generator, Iterable, Optional
from uuid import uuid4

from exceptions import CountryCodeExistsError, CountryNotFoundError, DatabaseError
from models.country import CountryCreate, CountryResponse, CountryUpdate
from models.country_import import ImportProgress


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, data: list = None, count: int = None):
        self._data = data or []
        self._count = count

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        if isinstance(data, dict):
            data = [data]
        for item in data:
            item["id"] = "test-uuid-123"
            item["created_at"] = _now()
            item["updated_at"] = _now()
        self._data = data
        return self

    def update(self, data):
        # Simulate update - merge with existing data
        updated_data = []
        for item in self._data:
            merged = {**item, **data}
            merged["updated_at"] = _now()
            updated_data.append(merged)
        self._data = updated_data if updated_data else [data]
        return self

    def eq(self, column, value):
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, data: list = None, count: int = None, error: Exception = None):
        self._data = data or []
        self._count = count
        self._error = error

    def _query(self) -> MockSupabaseQuery:
        if self._error is not None:
            raise self._error
        return MockSupabaseQuery([dict(row) for row in self._data], self._count)

    def select(self, *args, **kwargs):
        return self._query()

    def insert(self, data):
        return self._query().insert(data)

    def update(self, data):
        # For update, pass the existing data so it can be merged
        return self._query().update(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count, "error": None}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self._tables[table_name] = {"data": [], "count": None, "error": error}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None, "error": None})
        return MockSupabaseTable(config["data"], config["count"], config["error"])


# ===================
# IN-MEMORY COUNTRY STORE
# ===================

class InMemoryCountryStore:
    """
    CountryStore fake that records every write.

    Usage:
        store = InMemoryCountryStore([CountryFactory.create(code="US")])
        store.fail_codes.add("FR")   # create/update of FR raises
    """

    def __init__(self, countries: Optional[Iterable[dict]] = None):
        self.countries: dict[str, CountryResponse] = {}
        for row in countries or []:
            country = CountryResponse(**row)
            self.countries[country.id] = country
        self.calls: list[tuple[str, str]] = []
        self.fail_codes: set[str] = set()
        self.list_error: Optional[Exception] = None

    def list_all(self) -> list[CountryResponse]:
        if self.list_error is not None:
            raise self.list_error
        return sorted(self.countries.values(), key=lambda c: c.name)

    def create(self, data: CountryCreate) -> CountryResponse:
        self.calls.append(("create", data.code))
        if data.code in self.fail_codes:
            raise DatabaseError("insert", f"simulated failure for {data.code}")
        if any(c.code == data.code for c in self.countries.values()):
            raise CountryCodeExistsError(data.code)

        country = CountryResponse(id=str(uuid4()), **data.model_dump())
        self.countries[country.id] = country
        return country

    def update(self, country_id: str, data: CountryUpdate) -> CountryResponse:
        existing = self.countries.get(country_id)
        self.calls.append(("update", existing.code if existing else country_id))
        if existing is None:
            raise CountryNotFoundError(country_id)
        if existing.code in self.fail_codes:
            raise DatabaseError("update", f"simulated failure for {existing.code}")

        country = existing.model_copy(update=data.model_dump(exclude_none=True))
        self.countries[country_id] = country
        return country

    @property
    def write_count(self) -> int:
        return len(self.calls)

    def get_by_code(self, code: str) -> Optional[CountryResponse]:
        return next((c for c in self.countries.values() if c.code == code), None)


class ProgressRecorder:
    """Progress sink that keeps every update."""

    def __init__(self):
        self.updates: list[ImportProgress] = []

    def __call__(self, progress: ImportProgress) -> None:
        self.updates.append(progress)

    @property
    def stages(self) -> list[str]:
        return [p.stage.value for p in self.updates]


class RecordingNotifier:
    """Notifier that keeps (title, message, level) tuples."""

    def __init__(self):
        self.messages: list[tuple[str, str, str]] = []

    def notify(self, title: str, message: str, level: str = "info") -> None:
        self.messages.append((title, message, level))


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("countries", [
                {"id": "1", "code": "US", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("countries", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.country_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def sample_country_data() -> dict:
    """Sample stored country row."""
    return {
        "id": "test-uuid-123",
        "name": "United States",
        "code": "US",
        "continent": "North America",
        "region": "Northern America",
        "currency": "USD",
        "currency_symbol": "$",
        "status": "active",
        "flag_url": "https://flagcdn.com/us.svg",
        "is_popular": True,
        "visa_required": False,
        "languages": [],
        "pricing_currency_override": False,
        "pricing_currency": None,
        "pricing_currency_symbol": None,
        "created_at": "2026-01-05T10:00:00Z",
        "updated_at": "2026-01-05T10:00:00Z"
    }


@pytest.fixture
def empty_store() -> InMemoryCountryStore:
    return InMemoryCountryStore()


@pytest.fixture
def store_with_us(sample_country_data) -> InMemoryCountryStore:
    return InMemoryCountryStore([sample_country_data])


@pytest.fixture
def progress_recorder() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
