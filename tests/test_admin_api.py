"""Tests for the admin HTTP API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from src.api.main import app, get_services, get_source_builder
from src.config.settings import Settings, get_settings
from src.core.exceptions import SourceNotFoundError
from src.core.repositories import Database
from src.core.services import build_services

ADMIN_KEY = "test-admin-key"
AUTH = {"Authorization": f"Bearer {ADMIN_KEY}"}


@pytest.fixture
def settings() -> Settings:
    return Settings(admin_api_key=ADMIN_KEY, database_url="sqlite://", orchestrator_run_timeout=None)


@pytest.fixture
def services(settings):
    services = build_services(settings, Database("sqlite://"))
    yield services
    services.close()


@pytest.fixture
def sources():
    """Adapters handed to the scrape endpoint (replace per test)."""
    return []


@pytest.fixture
def client(settings, services, sources):
    def source_builder(names):
        if names and "nonexistent" in names:
            raise SourceNotFoundError("nonexistent")
        return sources

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_source_builder] = lambda: source_builder
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["events"] == 0


class TestAdminAuth:
    """Tests for bearer token checks."""

    def test_missing_token(self, client):
        response = client.post("/admin/reset")

        assert response.status_code == 401

    def test_wrong_token(self, client):
        response = client.post("/admin/reset", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_admin_disabled_without_key(self, client, settings):
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(update={"admin_api_key": None})

        response = client.post("/admin/reset", headers=AUTH)

        assert response.status_code == 503


class TestScrapeEndpoint:
    """Tests for POST /admin/scrape."""

    def test_scrape_returns_report(self, client, sources, make_adapter, make_raw_event):
        sources.extend(
            [
                make_adapter("ok", events=[make_raw_event()]),
                make_adapter("broken", error=RuntimeError("boom")),
            ]
        )

        response = client.post("/admin/scrape", headers=AUTH, json={})

        assert response.status_code == 200
        report = response.json()
        assert report["success"] is True
        assert report["total_events"] == 1
        assert report["total_processed"] == 1
        assert report["total_errors"] == 1
        assert [s["name"] for s in report["sources"]] == ["ok", "broken"]

    def test_every_source_failed(self, client, sources, make_adapter):
        sources.append(make_adapter("broken", error=TimeoutError("slow")))

        response = client.post("/admin/scrape", headers=AUTH, json={})

        assert response.status_code == 502
        report = response.json()
        assert report["success"] is False
        assert report["sources"][0]["error"] == "slow"

    def test_scrape_without_body(self, client):
        response = client.post("/admin/scrape", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["sources"] == []

    def test_unknown_source(self, client):
        response = client.post("/admin/scrape", headers=AUTH, json={"sources": ["nonexistent"]})

        assert response.status_code == 400

    def test_requires_auth(self, client):
        assert client.post("/admin/scrape").status_code == 401


class TestDeleteEndpoint:
    """Tests for DELETE /admin/events/{id}."""

    def test_delete_and_blacklist(self, client, services, make_event):
        saved = asyncio.run(services.events.upsert(make_event()))

        response = client.delete(f"/admin/events/{saved.id}", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["blacklisted"] == {"source": "ticketmaster", "external_id": "tm-1"}
        assert asyncio.run(services.events.count()) == 0
        assert asyncio.run(services.blacklist.is_blacklisted("ticketmaster", "tm-1")) is True

    def test_delete_unknown(self, client):
        response = client.delete("/admin/events/missing", headers=AUTH)

        assert response.status_code == 404


class TestResetEndpoint:
    """Tests for POST /admin/reset."""

    def test_reset(self, client, services, make_event):
        asyncio.run(services.events.upsert(make_event()))
        asyncio.run(services.blacklist.add("livepass", "lp-1"))

        response = client.post("/admin/reset", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"events_deleted": 1, "blacklist_deleted": 1}
