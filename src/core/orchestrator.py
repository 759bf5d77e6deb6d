"""Ingestion run: fetch every source, normalize, filter and persist.

A run moves through ``IDLE -> FETCHING -> NORMALIZING -> FILTERING ->
PERSISTING -> REPORTED``. Failures are isolated: a failing source is
reported and the others continue; a failing event is recorded in
``RunReport.errors`` and the batch continues.
"""

import asyncio
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from src.core.base_adapter import BaseAdapter, FetchParams
from src.core.business_rules import EventBusinessRules
from src.core.event_model import (
    Event,
    GlobalPreferences,
    RawEvent,
    category_from_label,
    generate_external_id,
    utcnow,
)
from src.core.exceptions import InvalidDateError, StorageError
from src.core.repositories import BlacklistStore, EventRepository, PreferencesProvider
from src.logging import LogContext, get_logger, log_source_run
from src.utils.date_parser import DEFAULT_TIMEZONE, parse_spanish_date
from src.utils.deduplication import DEFAULT_DUPLICATE_RULES, DuplicateRules, find_duplicate

logger = get_logger(__name__)

TIMED_OUT = "timed out"


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    FILTERING = "filtering"
    PERSISTING = "persisting"
    REPORTED = "reported"


@dataclass
class SourceResult:
    """Outcome of fetching one source."""

    name: str
    success: bool
    events_count: int = 0
    duration: float = 0.0  # seconds
    error: str | None = None


@dataclass
class EventError:
    """A per-event failure or rejection."""

    title: str
    reason: str
    field: str | None = None
    source: str | None = None


@dataclass
class RunReport:
    """Result of one ``fetch_all`` call."""

    sources: list[SourceResult] = field(default_factory=list)

    # Counts
    total_events: int = 0
    total_accepted: int = 0
    total_updated: int = 0
    total_duplicates: int = 0
    total_blacklisted: int = 0
    total_rejected: int = 0
    errors: list[EventError] = field(default_factory=list)

    # Timing
    duration: float = 0.0  # seconds
    timestamp: datetime = field(default_factory=utcnow)
    timed_out: bool = False

    @property
    def total_processed(self) -> int:
        """Events written to storage (inserted or updated)."""
        return self.total_accepted + self.total_updated

    @property
    def failed_sources(self) -> list[SourceResult]:
        return [s for s in self.sources if not s.success]

    @property
    def total_errors(self) -> int:
        return len(self.failed_sources) + len(self.errors)

    @property
    def success(self) -> bool:
        """False only when every source failed."""
        return not self.sources or any(s.success for s in self.sources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "sources": [vars(s).copy() for s in self.sources],
            "total_events": self.total_events,
            "total_processed": self.total_processed,
            "total_accepted": self.total_accepted,
            "total_updated": self.total_updated,
            "total_duplicates": self.total_duplicates,
            "total_blacklisted": self.total_blacklisted,
            "total_rejected": self.total_rejected,
            "total_errors": self.total_errors,
            "errors": [vars(e).copy() for e in self.errors],
            "duration": round(self.duration, 3),
            "timestamp": self.timestamp.isoformat(),
            "timed_out": self.timed_out,
        }


def _resolve_date(value: datetime | str | None, tz: ZoneInfo) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    return parse_spanish_date(value, tz=tz)


def to_event(raw: RawEvent, source_name: str, tz: ZoneInfo) -> Event:
    """Map a RawEvent to the canonical Event.

    Naive or textual dates are read in ``tz``. Sources without their own
    id get a stable hash of source, title, date and venue.

    Raises:
        InvalidDateError: the date cannot be parsed
        ValidationError: the result is not a valid Event
    """
    source = raw.source or source_name
    date = _resolve_date(raw.date, tz)
    if date is None:
        raise InvalidDateError(str(raw.date), source=source)

    # An unreadable end date is dropped, not fatal
    end_date = _resolve_date(raw.end_date, tz)

    return Event(
        source=source,
        external_id=raw.external_id or generate_external_id(source, raw.title, date, raw.venue),
        title=raw.title,
        description=raw.description,
        category=category_from_label(raw.category),
        genre=raw.genre,
        artists=raw.artists or [],
        date=date,
        end_date=end_date,
        venue_name=raw.venue,
        address=raw.address,
        city=raw.city or "",
        country=raw.country or "",
        venue_capacity=raw.venue_capacity,
        price=raw.price,
        price_max=raw.price_max,
        currency=raw.currency or "ARS",
        ticket_url=raw.ticket_url,
        image_url=raw.image_url,
    )


def _validation_field(error: ValidationError) -> str | None:
    for detail in error.errors():
        if detail.get("loc"):
            return str(detail["loc"][0])
    return None


class EventOrchestrator:
    """Runs registered sources and writes accepted events.

    Usage:
        orchestrator = EventOrchestrator(repository, blacklist, preferences)
        orchestrator.register_source(TicketmasterAdapter(api_key))
        report = await orchestrator.fetch_all()
    """

    def __init__(
        self,
        repository: EventRepository,
        blacklist: BlacklistStore,
        preferences: PreferencesProvider,
        rules: EventBusinessRules | None = None,
        duplicate_rules: DuplicateRules = DEFAULT_DUPLICATE_RULES,
        max_concurrency: int = 2,
        run_timeout: float | None = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self.repository = repository
        self.blacklist = blacklist
        self.preferences = preferences
        self.rules = rules or EventBusinessRules()
        self.duplicate_rules = duplicate_rules
        self.max_concurrency = max_concurrency
        self.run_timeout = run_timeout
        self.tz = ZoneInfo(timezone)

        self.state = RunState.IDLE
        self._sources: list[BaseAdapter] = []

    # ==========================================
    # Source registration
    # ==========================================

    def register_source(self, adapter: BaseAdapter) -> None:
        """Register an adapter; a second adapter with the same name is ignored."""
        if any(source.name == adapter.name for source in self._sources):
            logger.warning("source_already_registered", source=adapter.name)
            return
        self._sources.append(adapter)
        logger.info("source_registered", source=adapter.name, adapter_type=adapter.adapter_type.value)

    def register_sources(self, adapters: Iterable[BaseAdapter]) -> None:
        for adapter in adapters:
            self.register_source(adapter)

    def get_sources(self) -> list[BaseAdapter]:
        return list(self._sources)

    def clear_sources(self) -> None:
        self._sources.clear()

    # ==========================================
    # Run
    # ==========================================

    async def fetch_all(self, params: FetchParams | None = None) -> RunReport:
        """Run every registered source once and report the outcome."""
        run_id = uuid4().hex[:8]
        started = time.monotonic()
        report = RunReport()

        with LogContext(run_id=run_id):
            logger.info("run_started", sources=len(self._sources), max_concurrency=self.max_concurrency)

            # One snapshot per run: admin edits apply to the next run
            snapshot = await self.preferences.get_global_preferences()

            self.state = RunState.FETCHING
            fetched = await self._fetch_sources(params, run_id, report, started)

            self.state = RunState.NORMALIZING
            events = self._normalize(fetched, report)

            self.state = RunState.FILTERING
            events = await self._filter(events, snapshot, report)

            self.state = RunState.PERSISTING
            await self._persist(events, report)

            report.duration = time.monotonic() - started
            self.state = RunState.REPORTED
            logger.info(
                "run_complete",
                total_events=report.total_events,
                accepted=report.total_accepted,
                updated=report.total_updated,
                duplicates=report.total_duplicates,
                blacklisted=report.total_blacklisted,
                rejected=report.total_rejected,
                errors=report.total_errors,
                timed_out=report.timed_out,
                duration=round(report.duration, 2),
            )
        return report

    async def _fetch_sources(
        self,
        params: FetchParams | None,
        run_id: str,
        report: RunReport,
        started: float,
    ) -> list[tuple[BaseAdapter, list[RawEvent]]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_source(adapter: BaseAdapter) -> tuple[SourceResult, list[RawEvent]]:
            async with semaphore:
                source_started = time.monotonic()
                with log_source_run(adapter.name, run_id):
                    logger.info("source_fetch_started")
                    try:
                        raw_events = await adapter.fetch(params)
                    except Exception as e:
                        duration = time.monotonic() - source_started
                        logger.error(
                            "source_fetch_failed",
                            error=str(e),
                            error_type=type(e).__name__,
                            duration=round(duration, 2),
                        )
                        return SourceResult(adapter.name, False, 0, duration, str(e)), []
                    finally:
                        await adapter.close()

                    duration = time.monotonic() - source_started
                    logger.info("source_fetch_complete", events=len(raw_events), duration=round(duration, 2))
                    return SourceResult(adapter.name, True, len(raw_events), duration), raw_events

        tasks = {asyncio.create_task(run_source(adapter)): adapter for adapter in self._sources}
        if not tasks:
            return []

        done, pending = await asyncio.wait(tasks, timeout=self.run_timeout)
        if pending:
            report.timed_out = True
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("run_timed_out", timeout=self.run_timeout, pending=[tasks[t].name for t in pending])

        fetched = []
        for task, adapter in tasks.items():
            if task in done:
                result, raw_events = task.result()
            else:
                result = SourceResult(adapter.name, False, 0, time.monotonic() - started, TIMED_OUT)
                raw_events = []
            report.sources.append(result)
            if result.success:
                report.total_events += len(raw_events)
                fetched.append((adapter, raw_events))
        return fetched

    def _normalize(
        self,
        fetched: list[tuple[BaseAdapter, list[RawEvent]]],
        report: RunReport,
    ) -> list[Event]:
        events = []
        for adapter, raw_events in fetched:
            for raw in raw_events:
                try:
                    events.append(self.rules.normalize(to_event(raw, adapter.name, self.tz)))
                except InvalidDateError as e:
                    report.errors.append(EventError(raw.title, str(e), "date", raw.source or adapter.name))
                except ValidationError as e:
                    report.errors.append(
                        EventError(raw.title, str(e), _validation_field(e), raw.source or adapter.name)
                    )
        return events

    async def _filter(
        self,
        events: list[Event],
        snapshot: GlobalPreferences,
        report: RunReport,
    ) -> list[Event]:
        accepted = []
        for event in events:
            try:
                if await self.blacklist.is_blacklisted(event.source, event.external_id):
                    report.total_blacklisted += 1
                    logger.debug("event_blacklisted", source=event.source, external_id=event.external_id)
                    continue
            except StorageError as e:
                # The event goes on to rules and storage unchecked
                logger.warning("blacklist_check_failed", source=event.source, error=str(e))

            result = self.rules.is_acceptable(event, snapshot)
            if not result.valid:
                report.total_rejected += 1
                report.errors.append(EventError(event.title, result.reason or "", result.field, event.source))
                continue
            accepted.append(event)
        return accepted

    async def _persist(self, events: list[Event], report: RunReport) -> None:
        if not events:
            return

        try:
            existing = await self.repository.find_existing()
        except StorageError as e:
            logger.error("load_existing_failed", error=str(e))
            existing = []

        for event in events:
            try:
                duplicate = find_duplicate(event, existing, self.duplicate_rules)
                if duplicate is None:
                    existing.append(await self.repository.upsert(event))
                    report.total_accepted += 1
                    continue

                report.total_duplicates += 1
                if self.rules.should_update(event, duplicate):
                    updated = await self.repository.upsert(
                        event.model_copy(
                            update={
                                "id": duplicate.id,
                                "source": duplicate.source,
                                "external_id": duplicate.external_id,
                                "created_at": duplicate.created_at,
                            }
                        )
                    )
                    existing[existing.index(duplicate)] = updated
                    report.total_updated += 1
            except StorageError as e:
                logger.error("event_persist_failed", title=event.title, source=event.source, error=str(e))
                report.errors.append(EventError(event.title, str(e), None, event.source))
