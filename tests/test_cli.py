"""Tests for the envivo CLI."""

import asyncio

import pytest
from typer.testing import CliRunner

from src.cli.main import app
from src.config.settings import get_settings
from src.core.services import build_services

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a throwaway SQLite file and keep logging quiet."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'envivo.db'}")
    monkeypatch.setattr("src.cli.main.setup_logging", lambda *args, **kwargs: None)
    get_settings.cache_clear()


@pytest.fixture
def stored_event(make_event):
    services = build_services()
    try:
        return asyncio.run(services.events.upsert(make_event()))
    finally:
        services.close()


class TestInfoCommands:
    """Tests for commands that only read configuration."""

    def test_sources(self):
        result = runner.invoke(app, ["sources"])

        assert result.exit_code == 0
        assert "ticketmaster" in result.output
        assert "movistararena" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output


class TestScrapeCommand:
    """Tests for envivo scrape."""

    def test_scrape_prints_report(self, monkeypatch, make_adapter, make_raw_event):
        adapters = [make_adapter("ok", events=[make_raw_event()])]
        monkeypatch.setattr("src.cli.main.build_sources", lambda names=None: adapters)

        result = runner.invoke(app, ["scrape"])

        assert result.exit_code == 0
        assert "RUN REPORT" in result.output
        assert "Inserted: 1" in result.output
        assert adapters[0].closed is True

    def test_scrape_fails_when_every_source_fails(self, monkeypatch, make_adapter):
        adapters = [make_adapter("broken", error=RuntimeError("boom"))]
        monkeypatch.setattr("src.cli.main.build_sources", lambda names=None: adapters)

        result = runner.invoke(app, ["scrape"])

        assert result.exit_code == 1

    def test_unknown_source(self):
        result = runner.invoke(app, ["scrape", "--source", "nonexistent"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestAdminCommands:
    """Tests for delete-event, blacklist and reset."""

    def test_empty_blacklist(self):
        result = runner.invoke(app, ["blacklist"])

        assert result.exit_code == 0
        assert "Blacklist is empty" in result.output

    def test_delete_event(self, stored_event):
        result = runner.invoke(app, ["delete-event", stored_event.id, "--reason", "Evento cancelado"])

        assert result.exit_code == 0
        assert "blacklisted ticketmaster/tm-1" in result.output

        listing = runner.invoke(app, ["blacklist"])
        assert "tm-1" in listing.output

    def test_delete_missing_event(self):
        result = runner.invoke(app, ["delete-event", "missing"])

        assert result.exit_code == 1

    def test_reset_with_yes(self, stored_event):
        result = runner.invoke(app, ["reset", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 1 events" in result.output

    def test_reset_aborted(self, stored_event):
        result = runner.invoke(app, ["reset"], input="n\n")

        assert result.exit_code == 1
