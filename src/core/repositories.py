"""Persistence for events, the blacklist and global preferences.

SQLAlchemy 2.0 models over SQLite (any SQLAlchemy URL works). Repository
methods are coroutines so the orchestrator awaits them like any other I/O;
each call runs in its own short transaction.

The ``Protocol`` classes are the interfaces the orchestrator depends on,
so tests and other backends can provide their own implementations.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.event_model import (
    BlacklistEntry,
    Event,
    EventCategory,
    GlobalPreferences,
    VenueSize,
    ensure_utc,
    utcnow,
)
from src.core.exceptions import EventNotFoundError, StorageError
from src.logging import get_logger

logger = get_logger(__name__)

PREFERENCES_ID = "singleton"


# ============================================================
# INTERFACES
# ============================================================


class EventRepository(Protocol):
    async def find_existing(self, source: str | None = None) -> list[Event]: ...

    async def upsert(self, event: Event) -> Event: ...

    async def delete(self, event_id: str) -> None: ...


class BlacklistStore(Protocol):
    async def is_blacklisted(self, source: str, external_id: str) -> bool: ...

    async def add(self, source: str, external_id: str, reason: str | None = None) -> None: ...


class PreferencesProvider(Protocol):
    async def get_global_preferences(self) -> GlobalPreferences: ...


# ============================================================
# MODELS
# ============================================================


class Base(DeclarativeBase):
    pass


class EventRecord(Base):
    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_events_source_external_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    source: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(500), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default=EventCategory.OTRO.value)
    genre: Mapped[str | None] = mapped_column(String(100))
    artists: Mapped[list[str]] = mapped_column(JSON, default=list)

    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)

    venue_name: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(String(500))
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    venue_capacity: Mapped[int | None] = mapped_column(Integer)

    price: Mapped[float | None] = mapped_column(Float)
    price_max: Mapped[float | None] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ARS")
    ticket_url: Mapped[str | None] = mapped_column(String(1000))
    image_url: Mapped[str | None] = mapped_column(String(1000))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<EventRecord(title={self.title}, source={self.source})>"


class BlacklistRecord(Base):
    __tablename__ = "event_blacklist"
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_blacklist_source_external_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    external_id: Mapped[str] = mapped_column(String(500), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class PreferencesRecord(Base):
    __tablename__ = "global_preferences"

    id: Mapped[str] = mapped_column(String(20), primary_key=True, default=PREFERENCES_ID)
    allowed_countries: Mapped[list[str]] = mapped_column(JSON, default=list)
    allowed_cities: Mapped[list[str]] = mapped_column(JSON, default=list)
    allowed_genres: Mapped[list[str]] = mapped_column(JSON, default=list)
    blocked_genres: Mapped[list[str]] = mapped_column(JSON, default=list)
    allowed_categories: Mapped[list[str]] = mapped_column(JSON, default=list)
    allowed_venue_sizes: Mapped[list[str]] = mapped_column(JSON, default=list)
    venue_size_thresholds: Mapped[dict[str, int]] = mapped_column(JSON, default=dict)
    needs_rescraping: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


# ============================================================
# DATABASE
# ============================================================


def _to_db_datetime(value: datetime | None) -> datetime | None:
    """Naive UTC for storage (SQLite drops offsets)."""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def _from_db_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


class Database:
    """Engine and session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False) -> None:
        kwargs: dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        self.url = url
        self.engine = create_engine(url, **kwargs)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session whose work commits together or rolls back together."""
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("database_error", error=str(e), error_type=type(e).__name__)
            raise StorageError(str(e)) from e

    def dispose(self) -> None:
        self.engine.dispose()


# ============================================================
# SESSION-LEVEL OPERATIONS
# Shared by the repositories and AdminService so several of them can
# run inside a single transaction.
# ============================================================


def event_to_record_values(event: Event) -> dict[str, Any]:
    return {
        "source": event.source,
        "external_id": event.external_id,
        "title": event.title,
        "description": event.description,
        "category": event.category.value,
        "genre": event.genre,
        "artists": list(event.artists),
        "date": _to_db_datetime(event.date),
        "end_date": _to_db_datetime(event.end_date),
        "venue_name": event.venue_name,
        "address": event.address,
        "city": event.city,
        "country": event.country,
        "venue_capacity": event.venue_capacity,
        "price": event.price,
        "price_max": event.price_max,
        "currency": event.currency,
        "ticket_url": event.ticket_url,
        "image_url": event.image_url,
    }


def record_to_event(record: EventRecord) -> Event:
    return Event(
        id=record.id,
        source=record.source,
        external_id=record.external_id,
        title=record.title,
        description=record.description,
        category=EventCategory(record.category),
        genre=record.genre,
        artists=record.artists or [],
        date=_from_db_datetime(record.date),
        end_date=_from_db_datetime(record.end_date),
        venue_name=record.venue_name,
        address=record.address,
        city=record.city,
        country=record.country,
        venue_capacity=record.venue_capacity,
        price=record.price,
        price_max=record.price_max,
        currency=record.currency,
        ticket_url=record.ticket_url,
        image_url=record.image_url,
        created_at=_from_db_datetime(record.created_at) or utcnow(),
        updated_at=_from_db_datetime(record.updated_at) or utcnow(),
    )


def delete_event(session: Session, event_id: str) -> EventRecord:
    """Delete one event row, raising EventNotFoundError if it is missing."""
    record = session.get(EventRecord, event_id)
    if record is None:
        raise EventNotFoundError(event_id)
    session.delete(record)
    return record


def insert_blacklist_entry(
    session: Session,
    source: str,
    external_id: str,
    reason: str | None,
) -> None:
    """INSERT ... ON CONFLICT DO NOTHING on (source, external_id)."""
    values = {
        "id": str(uuid4()),
        "source": source,
        "external_id": external_id,
        "reason": reason,
        "created_at": _to_db_datetime(utcnow()),
    }
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        stmt = sqlite.insert(BlacklistRecord).values(**values).on_conflict_do_nothing(
            index_elements=["source", "external_id"]
        )
    elif dialect == "postgresql":
        stmt = postgresql.insert(BlacklistRecord).values(**values).on_conflict_do_nothing(
            index_elements=["source", "external_id"]
        )
    else:
        exists = session.scalar(
            select(BlacklistRecord.id).where(
                BlacklistRecord.source == source,
                BlacklistRecord.external_id == external_id,
            )
        )
        if exists:
            return
        session.add(BlacklistRecord(**values))
        return
    session.execute(stmt)


# ============================================================
# REPOSITORIES
# ============================================================


class SqlEventRepository:
    """Event repository over SQLAlchemy."""

    def __init__(self, database: Database) -> None:
        self.db = database

    async def find_existing(self, source: str | None = None) -> list[Event]:
        """All stored events, optionally limited to one source."""
        with self.db.transaction() as session:
            stmt = select(EventRecord).order_by(EventRecord.date, EventRecord.created_at)
            if source is not None:
                stmt = stmt.where(EventRecord.source == source)
            return [record_to_event(r) for r in session.scalars(stmt)]

    async def find_by_id(self, event_id: str) -> Event | None:
        with self.db.transaction() as session:
            record = session.get(EventRecord, event_id)
            return record_to_event(record) if record else None

    async def find_in_window(self, date_from: datetime, date_to: datetime) -> list[Event]:
        """Events whose date falls inside [date_from, date_to]."""
        with self.db.transaction() as session:
            stmt = (
                select(EventRecord)
                .where(EventRecord.date >= _to_db_datetime(date_from))
                .where(EventRecord.date <= _to_db_datetime(date_to))
                .order_by(EventRecord.date)
            )
            return [record_to_event(r) for r in session.scalars(stmt)]

    async def upsert(self, event: Event) -> Event:
        """Insert the event, or update the row with the same id or origin."""
        with self.db.transaction() as session:
            record = session.get(EventRecord, event.id) if event.id else None
            if record is None:
                record = session.scalar(
                    select(EventRecord).where(
                        EventRecord.source == event.source,
                        EventRecord.external_id == event.external_id,
                    )
                )

            values = event_to_record_values(event)
            now = _to_db_datetime(utcnow())
            if record is None:
                record = EventRecord(
                    id=event.id or str(uuid4()),
                    created_at=now,
                    updated_at=now,
                    **values,
                )
                session.add(record)
            else:
                for key, value in values.items():
                    setattr(record, key, value)
                record.updated_at = now

            session.flush()
            return record_to_event(record)

    async def delete(self, event_id: str) -> None:
        with self.db.transaction() as session:
            delete_event(session, event_id)

    async def delete_all(self) -> int:
        with self.db.transaction() as session:
            return session.execute(delete(EventRecord)).rowcount or 0

    async def count(self) -> int:
        with self.db.transaction() as session:
            return session.scalar(select(func.count()).select_from(EventRecord)) or 0


class SqlBlacklistStore:
    """Blacklist of user-removed events keyed by (source, external_id)."""

    def __init__(self, database: Database) -> None:
        self.db = database

    async def is_blacklisted(self, source: str, external_id: str) -> bool:
        with self.db.transaction() as session:
            found = session.scalar(
                select(BlacklistRecord.id)
                .where(BlacklistRecord.source == source)
                .where(BlacklistRecord.external_id == external_id)
                .limit(1)
            )
            return found is not None

    async def add(self, source: str, external_id: str, reason: str | None = None) -> None:
        """Add an entry; adding an existing pair is a silent no-op."""
        with self.db.transaction() as session:
            insert_blacklist_entry(session, source, external_id, reason)
        logger.info("blacklist_add", source=source, external_id=external_id, reason=reason)

    async def list_entries(self) -> list[BlacklistEntry]:
        with self.db.transaction() as session:
            records = session.scalars(select(BlacklistRecord).order_by(BlacklistRecord.created_at))
            return [
                BlacklistEntry(
                    id=r.id,
                    source=r.source,
                    external_id=r.external_id,
                    reason=r.reason,
                    created_at=_from_db_datetime(r.created_at) or utcnow(),
                )
                for r in records
            ]

    async def count(self) -> int:
        with self.db.transaction() as session:
            return session.scalar(select(func.count()).select_from(BlacklistRecord)) or 0

    async def clear_all(self) -> int:
        with self.db.transaction() as session:
            return session.execute(delete(BlacklistRecord)).rowcount or 0


class SqlPreferencesRepository:
    """Singleton GlobalPreferences row, created with defaults on first read."""

    def __init__(self, database: Database) -> None:
        self.db = database

    @staticmethod
    def _to_model(record: PreferencesRecord) -> GlobalPreferences:
        return GlobalPreferences(
            allowed_countries=record.allowed_countries,
            allowed_cities=record.allowed_cities,
            allowed_genres=record.allowed_genres,
            blocked_genres=record.blocked_genres,
            allowed_categories=[EventCategory(c) for c in record.allowed_categories],
            allowed_venue_sizes=[VenueSize(s) for s in record.allowed_venue_sizes],
            venue_size_thresholds={VenueSize(k): v for k, v in record.venue_size_thresholds.items()},
            needs_rescraping=record.needs_rescraping,
            updated_at=_from_db_datetime(record.updated_at) or utcnow(),
        )

    @staticmethod
    def _apply(record: PreferencesRecord, prefs: GlobalPreferences) -> None:
        record.allowed_countries = list(prefs.allowed_countries)
        record.allowed_cities = list(prefs.allowed_cities)
        record.allowed_genres = list(prefs.allowed_genres)
        record.blocked_genres = list(prefs.blocked_genres)
        record.allowed_categories = [c.value for c in prefs.allowed_categories]
        record.allowed_venue_sizes = [s.value for s in prefs.allowed_venue_sizes]
        record.venue_size_thresholds = {k.value: v for k, v in prefs.venue_size_thresholds.items()}
        record.needs_rescraping = prefs.needs_rescraping
        record.updated_at = _to_db_datetime(utcnow())

    def _get_or_create(self, session: Session) -> PreferencesRecord:
        record = session.get(PreferencesRecord, PREFERENCES_ID)
        if record is None:
            record = PreferencesRecord(id=PREFERENCES_ID)
            self._apply(record, GlobalPreferences())
            session.add(record)
            session.flush()
            logger.info("preferences_initialized")
        return record

    async def get_global_preferences(self) -> GlobalPreferences:
        with self.db.transaction() as session:
            return self._to_model(self._get_or_create(session))

    async def update(self, **changes: Any) -> GlobalPreferences:
        """Apply admin changes and flag that stored events need re-scraping."""
        with self.db.transaction() as session:
            record = self._get_or_create(session)
            current = self._to_model(record)
            updated = GlobalPreferences.model_validate(
                {**current.model_dump(), **changes, "needs_rescraping": True}
            )
            self._apply(record, updated)
            return self._to_model(record)

    async def mark_rescraping_done(self) -> None:
        with self.db.transaction() as session:
            record = self._get_or_create(session)
            record.needs_rescraping = False
            record.updated_at = _to_db_datetime(utcnow())
