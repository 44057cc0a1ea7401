"""Pytest configuration for test isolation.

The ``db.client`` engine is a process-wide singleton bound to the first
``DATABASE_URL`` it sees. Each test gets its own SQLite file and a fresh
engine so rows never leak between tests, and the ``SPEND_TRACKER_*``
environment is cleared so configuration defaults are predictable.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import reset_engine

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SPEND_TRACKER_SUGGEST_RADIUS_M",
        "SPEND_TRACKER_MERGE_RADIUS_M",
        "SPEND_TRACKER_REPORT_TZ",
        "SPEND_TRACKER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    """A fresh SQLite database with the full schema, exported as DATABASE_URL."""

    reset_engine()
    url = bootstrap_sqlite_db(tmp_path / "spend.db")
    monkeypatch.setenv("DATABASE_URL", url)
    yield url
    reset_engine()
