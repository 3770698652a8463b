"""
Pytest fixtures for the trip ledger test suite.

Provides:
- Structured logging configuration and log capture
- SQLite-backed engine/session factory per test (in-memory by default)
- Ledger stores and a TripService wired to them

Environment Variables:
- DATABASE_URL: database for SQL store tests. Defaults to in-memory SQLite.
"""

import json
import logging
import os
from io import StringIO

import pytest

from trip_ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from trip_ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from trip_ledger_kernel.services.ledger_store import InMemoryLedgerStore, SqlLedgerStore
from trip_ledger_kernel.services.trip_service import TripService

DEFAULT_TEST_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture trip_ledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            compute_net_balances(ledger)
            logs = captured_logs()
            assert any(r["message"] == "net_balances_computed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("trip_ledger")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


@pytest.fixture
def session_factory():
    """Fresh schema per test; dropped and disposed afterwards."""
    init_engine_from_url(get_database_url())
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_store(session_factory) -> SqlLedgerStore:
    return SqlLedgerStore(session_factory)


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Run a test once per LedgerRepository implementation."""
    if request.param == "memory":
        return InMemoryLedgerStore()
    return SqlLedgerStore(request.getfixturevalue("session_factory"))


@pytest.fixture
def service(store) -> TripService:
    return TripService(store)
