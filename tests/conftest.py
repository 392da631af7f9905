"""
Shared test fixtures.

Provides: a fixed "now", a temp-dir cache, a mocked catalog and a store wired to them.
"""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from cache import LocalCache
from catalog import CatalogPayload
from factories import NOW
from notifications import ReminderScheduler
from store import StudyStore


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    return LocalCache(directory=str(tmp_path / "cache"))


@pytest.fixture
def catalog() -> AsyncMock:
    client = AsyncMock()
    client.fetch = AsyncMock(return_value=CatalogPayload())
    return client


@pytest.fixture
def scheduler() -> ReminderScheduler:
    return ReminderScheduler(now=lambda: NOW)


@pytest.fixture
def store(cache, catalog, scheduler) -> StudyStore:
    return StudyStore(cache=cache, catalog=catalog, scheduler=scheduler, now=lambda: NOW)
