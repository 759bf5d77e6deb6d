"""Wiring of the database, repositories and orchestrator from Settings.

Shared by the CLI and the admin API so both build the same objects.
"""

from dataclasses import dataclass

from src.config.settings import Settings, get_settings
from src.core.admin_service import AdminService
from src.core.base_adapter import BaseAdapter
from src.core.orchestrator import EventOrchestrator
from src.core.repositories import (
    Database,
    SqlBlacklistStore,
    SqlEventRepository,
    SqlPreferencesRepository,
)


@dataclass
class Services:
    settings: Settings
    database: Database
    events: SqlEventRepository
    blacklist: SqlBlacklistStore
    preferences: SqlPreferencesRepository
    admin: AdminService

    def create_orchestrator(self, sources: list[BaseAdapter] | None = None) -> EventOrchestrator:
        orchestrator = EventOrchestrator(
            self.events,
            self.blacklist,
            self.preferences,
            max_concurrency=self.settings.orchestrator_max_concurrency,
            run_timeout=self.settings.orchestrator_run_timeout,
            timezone=self.settings.default_timezone,
        )
        orchestrator.register_sources(sources or [])
        return orchestrator

    def close(self) -> None:
        self.database.dispose()


def build_services(settings: Settings | None = None, database: Database | None = None) -> Services:
    """Create (and migrate) the database and everything that uses it."""
    settings = settings or get_settings()
    database = database or Database(settings.database_url, echo=settings.debug)
    database.create_all()

    return Services(
        settings=settings,
        database=database,
        events=SqlEventRepository(database),
        blacklist=SqlBlacklistStore(database),
        preferences=SqlPreferencesRepository(database),
        admin=AdminService(database),
    )
