"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import date
from pathlib import Path
from fastapi.testclient import TestClient


@pytest.fixture
def temp_db_path(tmp_path) -> Path:
    """Path to a fresh database file."""
    return tmp_path / "test.db"


@pytest.fixture
def store(temp_db_path):
    """SQLite store on a temporary database."""
    from finance_tracker.db.sqlite_store import SQLiteStore

    with SQLiteStore(temp_db_path) as store:
        yield store


@pytest.fixture
def temp_service(temp_db_path):
    """Finance service on a temporary database."""
    from finance_tracker.api.finance_service import FinanceService

    with FinanceService(db_path=temp_db_path) as service:
        yield service


@pytest.fixture
def context_id(temp_service) -> int:
    """ID of the seeded default context."""
    return temp_service.store.get_all_contexts()[0]["id"]


@pytest.fixture
def client(temp_service):
    """Test client wired to the temporary service."""
    from finance_tracker.web.api import app, get_service

    app.dependency_overrides[get_service] = lambda: temp_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def this_month() -> str:
    return date.today().strftime("%Y-%m")


@pytest.fixture
def sample_transaction(context_id) -> dict:
    """A valid transaction payload for the default context."""
    return {
        "context_id": context_id,
        "description": "Weekly groceries",
        "date": "2024-01-15",
        "category": "Food",
        "type": "Expense",
        "amount": 125.50,
        "account": "Checking",
        "notes": None
    }
