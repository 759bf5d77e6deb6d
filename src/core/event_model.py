"""Pydantic models for raw listings, canonical events and preferences."""

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EventCategory(str, Enum):
    """Categories an event can be filed under.

    Values are the labels shown in the UI and stored in the database.
    """

    CONCIERTO = "Concierto"
    FESTIVAL = "Festival"
    TEATRO = "Teatro"
    STAND_UP = "Stand-up"
    OPERA = "Ópera"
    BALLET = "Ballet"
    OTRO = "Otro"


# Free-form labels (any case) mapped to a category
CATEGORY_ALIASES: dict[str, EventCategory] = {
    "concierto": EventCategory.CONCIERTO,
    "concert": EventCategory.CONCIERTO,
    "show": EventCategory.CONCIERTO,
    "festival": EventCategory.FESTIVAL,
    "fest": EventCategory.FESTIVAL,
    "teatro": EventCategory.TEATRO,
    "theater": EventCategory.TEATRO,
    "theatre": EventCategory.TEATRO,
    "stand-up": EventCategory.STAND_UP,
    "standup": EventCategory.STAND_UP,
    "comedy": EventCategory.STAND_UP,
    "comedia": EventCategory.STAND_UP,
    "opera": EventCategory.OPERA,
    "ópera": EventCategory.OPERA,
    "ballet": EventCategory.BALLET,
    "otro": EventCategory.OTRO,
}


def category_from_label(label: str | EventCategory | None) -> EventCategory:
    """Map a scraped category label to an EventCategory (``Otro`` if unknown)."""
    if isinstance(label, EventCategory):
        return label
    if not label:
        return EventCategory.OTRO
    return CATEGORY_ALIASES.get(label.strip().lower(), EventCategory.OTRO)


class VenueSize(str, Enum):
    """Venue size buckets derived from capacity."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawEvent(BaseModel):
    """Source-native record produced by an adapter before normalization."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")

    title: str
    date: datetime | str | None = None
    end_date: datetime | str | None = None
    venue: str | None = None
    city: str | None = None
    country: str | None = None
    address: str | None = None
    category: str | None = None
    genre: str | None = None
    artists: list[str] | None = None
    image_url: str | None = None
    ticket_url: str | None = None
    price: float | None = None
    price_max: float | None = None
    currency: str | None = None
    venue_capacity: int | None = None
    external_id: str | None = None
    description: str | None = None
    source: str | None = None

    @model_validator(mode="after")
    def require_title_and_date(self) -> "RawEvent":
        if not self.title:
            raise ValueError("title is required")
        if self.date is None or self.date == "":
            raise ValueError("date is required")
        return self


class Event(BaseModel):
    """Canonical, persisted event.

    ``city`` and ``country`` are never null: an empty string means the
    source did not provide the value.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str | None = None
    source: Annotated[str, Field(min_length=1)]
    external_id: Annotated[str, Field(min_length=1)]

    title: Annotated[str, Field(min_length=1, max_length=500)]
    description: str | None = None
    category: EventCategory = EventCategory.OTRO
    genre: str | None = None
    artists: list[str] = Field(default_factory=list)

    date: datetime
    end_date: datetime | None = None

    venue_name: str | None = None
    address: str | None = None
    city: str = ""
    country: str = ""
    venue_capacity: int | None = None

    price: float | None = None
    price_max: float | None = None
    currency: str = "ARS"
    ticket_url: str | None = None

    image_url: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("date", "end_date", "created_at", "updated_at")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        """Store every timestamp as an aware UTC datetime."""
        return ensure_utc(v) if v is not None else None

    @field_validator("city", "country", mode="before")
    @classmethod
    def empty_placeholder(cls, v: Any) -> str:
        return v or ""

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the external origin."""
        return (self.source, self.external_id)


def generate_external_id(source: str, title: str, date: datetime | str, venue: str | None) -> str:
    """Generate a stable external_id for events whose source has no id."""
    date_part = date.isoformat() if isinstance(date, datetime) else str(date)
    key = f"{source}:{title}:{date_part}:{venue or ''}"
    return hashlib.sha256(key.encode()).hexdigest()[:32]


class BlacklistEntry(BaseModel):
    """An event suppressed by a user; unique on (source, external_id)."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    source: str
    external_id: str
    reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


DEFAULT_VENUE_SIZE_THRESHOLDS: dict[VenueSize, int] = {
    VenueSize.SMALL: 500,
    VenueSize.MEDIUM: 2000,
    VenueSize.LARGE: 5000,
}


class GlobalPreferences(BaseModel):
    """Singleton acceptance policy, read once per orchestrator run.

    Instances are frozen: a run holds a snapshot and admin updates create
    a new record instead of mutating the one in use.
    """

    model_config = ConfigDict(frozen=True)

    allowed_countries: list[str] = Field(default_factory=lambda: ["AR"])
    allowed_cities: list[str] = Field(
        default_factory=lambda: ["Buenos Aires", "Ciudad de Buenos Aires", "CABA"]
    )
    allowed_genres: list[str] = Field(default_factory=list)
    blocked_genres: list[str] = Field(default_factory=list)
    allowed_categories: list[EventCategory] = Field(
        default_factory=lambda: [
            EventCategory.CONCIERTO,
            EventCategory.FESTIVAL,
            EventCategory.TEATRO,
        ]
    )
    allowed_venue_sizes: list[VenueSize] = Field(
        default_factory=lambda: [VenueSize.SMALL, VenueSize.MEDIUM, VenueSize.LARGE]
    )
    venue_size_thresholds: dict[VenueSize, int] = Field(
        default_factory=lambda: dict(DEFAULT_VENUE_SIZE_THRESHOLDS)
    )
    needs_rescraping: bool = False
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("venue_size_thresholds")
    @classmethod
    def complete_thresholds(cls, v: dict[VenueSize, int]) -> dict[VenueSize, int]:
        """Fill missing buckets from the defaults; SMALL must stay below MEDIUM."""
        thresholds = {**DEFAULT_VENUE_SIZE_THRESHOLDS, **v}
        if thresholds[VenueSize.SMALL] >= thresholds[VenueSize.MEDIUM]:
            raise ValueError("small venue threshold must be below the medium one")
        return thresholds
