"""Shared pytest fixtures for Innkeeper tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import FakeAvailabilityStore  # noqa: E402


@pytest.fixture(autouse=True)
def _no_database_url(monkeypatch):
    """Keep unit tests off any real database configured in the shell.

    Tests that need a live Postgres read DATABASE_URL at collection time
    (see test_infra_db.py) and are skipped otherwise.
    """
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DB_PASSWORD", raising=False)


@pytest.fixture
def store():
    return FakeAvailabilityStore()
