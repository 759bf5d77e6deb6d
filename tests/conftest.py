"""Pytest configuration and shared fixtures."""

import asyncio
import sys
from datetime import timedelta
from typing import Any

import pytest

from src.config.settings import get_settings
from src.core.admin_service import AdminService
from src.core.base_adapter import AdapterType, BaseAdapter, FetchParams
from src.core.event_model import Event, RawEvent, utcnow
from src.core.repositories import (
    Database,
    SqlBlacklistStore,
    SqlEventRepository,
    SqlPreferencesRepository,
)

# Fix encoding for Windows
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")


@pytest.fixture(autouse=True)
def reset_settings():
    """Settings are cached; tests that patch the environment need a fresh copy."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================
# FAKES
# ============================================================


class SleepRecorder:
    """Async stand-in for ``asyncio.sleep`` that records the delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeAdapter(BaseAdapter):
    """Adapter returning canned events, or raising, after an optional delay."""

    adapter_type = AdapterType.API

    def __init__(
        self,
        name: str,
        events: list[RawEvent] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        super().__init__()
        self.events = events or []
        self.error = error
        self.delay = delay
        self.calls = 0
        self.closed = False

    async def fetch(self, params: FetchParams | None = None) -> list[RawEvent]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.events)

    async def close(self) -> None:
        self.closed = True
        await super().close()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# ============================================================
# DATABASE
# ============================================================


@pytest.fixture
def database():
    """Fresh in-memory SQLite database per test."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def event_repository(database) -> SqlEventRepository:
    return SqlEventRepository(database)


@pytest.fixture
def blacklist_store(database) -> SqlBlacklistStore:
    return SqlBlacklistStore(database)


@pytest.fixture
def preferences_repository(database) -> SqlPreferencesRepository:
    return SqlPreferencesRepository(database)


@pytest.fixture
def admin_service(database) -> AdminService:
    return AdminService(database)


# ============================================================
# EVENT FACTORIES
# ============================================================


@pytest.fixture
def make_event():
    """Factory for canonical events happening in ten days in Buenos Aires."""

    def _make(**overrides: Any) -> Event:
        values: dict[str, Any] = {
            "source": "ticketmaster",
            "external_id": "tm-1",
            "title": "Divididos en el Luna Park",
            "date": utcnow() + timedelta(days=10),
            "venue_name": "Luna Park",
            "city": "Buenos Aires",
            "country": "AR",
            "category": "Concierto",
        }
        values.update(overrides)
        return Event(**values)

    return _make


@pytest.fixture
def make_raw_event():
    """Factory for raw events as an adapter would return them."""

    def _make(**overrides: Any) -> RawEvent:
        values: dict[str, Any] = {
            "source": "testsource",
            "external_id": "raw-1",
            "title": "Babasónicos",
            "date": utcnow() + timedelta(days=10),
            "venue": "Movistar Arena",
            "city": "Buenos Aires",
            "country": "AR",
            "category": "Concierto",
        }
        values.update(overrides)
        return RawEvent(**values)

    return _make


@pytest.fixture
def make_adapter():
    """Factory for ``FakeAdapter`` instances."""

    def _make(name: str, **kwargs: Any) -> FakeAdapter:
        return FakeAdapter(name, **kwargs)

    return _make
