"""Acceptance policy for canonical events.

``EventBusinessRules.is_acceptable`` is a predicate: it never raises, it
returns a ``ValidationResult`` naming the first failed check and the field
responsible. Checks run in this order:

1. date sanity (not too far in the past or future)
2. location (city/country present and allowed)
3. category allowed
4. genre not blocked / in the allow-list
5. venue size allowed (only when capacity is known)
6. title length
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.core.event_model import Event, GlobalPreferences, VenueSize, category_from_label
from src.logging import get_logger

logger = get_logger(__name__)

COUNTRY_CODES = {
    "argentina": "AR",
    "uruguay": "UY",
    "chile": "CL",
    "brasil": "BR",
    "brazil": "BR",
    "paraguay": "PY",
    "bolivia": "BO",
    "peru": "PE",
    "perú": "PE",
    "colombia": "CO",
    "ecuador": "EC",
    "venezuela": "VE",
}

# Higher wins when two sources describe the same show
SOURCE_RELIABILITY = {
    "ticketmaster": 10,
    "eventbrite": 9,
    "spotify": 8,
    "scraper_local": 5,
    "file": 3,
}


@dataclass(frozen=True)
class DateRules:
    min_days_in_future: int = -1  # allows events up to 1 day in the past
    max_days_in_future: int = 365
    allow_past_events: bool = True


@dataclass(frozen=True)
class LocationRules:
    required_location: bool = True


@dataclass(frozen=True)
class ContentRules:
    min_title_length: int = 3


@dataclass(frozen=True)
class BusinessRulesConfig:
    date_rules: DateRules = field(default_factory=DateRules)
    location_rules: LocationRules = field(default_factory=LocationRules)
    content_rules: ContentRules = field(default_factory=ContentRules)


DEFAULT_BUSINESS_RULES = BusinessRulesConfig()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a rules check."""

    valid: bool
    reason: str | None = None
    field: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str, field: str) -> "ValidationResult":
        return cls(valid=False, reason=reason, field=field)


def calculate_venue_size(capacity: int, thresholds: dict[VenueSize, int]) -> VenueSize:
    """Bucket a venue capacity using the configured thresholds."""
    if capacity < thresholds[VenueSize.SMALL]:
        return VenueSize.SMALL
    if capacity < thresholds[VenueSize.MEDIUM]:
        return VenueSize.MEDIUM
    return VenueSize.LARGE


def normalize_city(city: str | None) -> str:
    """Title-case each word: "buenos AIRES" -> "Buenos Aires"."""
    if not city:
        return ""
    return " ".join(word[:1].upper() + word[1:].lower() for word in city.strip().split())


def normalize_country(country: str | None) -> str:
    """Map a country name to its ISO-2 code when known."""
    if not country:
        return ""
    country = country.strip()
    if len(country) == 2:
        return country.upper()
    return COUNTRY_CODES.get(country.lower(), country.upper())


class EventBusinessRules:
    """Validates and normalizes events against the acceptance policy."""

    def __init__(
        self,
        config: BusinessRulesConfig = DEFAULT_BUSINESS_RULES,
        now_func: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self._now_func = now_func

    def _now(self) -> datetime:
        if self._now_func is not None:
            return self._now_func()
        return datetime.now(timezone.utc)

    # ==========================================
    # Validation
    # ==========================================

    def is_acceptable(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        """Check ``event`` against the rules and a preferences snapshot."""
        for check in (
            self._check_date,
            self._check_location,
            self._check_category,
            self._check_genre,
            self._check_venue_size,
            self._check_content,
        ):
            result = check(event, preferences)
            if not result.valid:
                logger.debug(
                    "event_rejected",
                    title=event.title,
                    source=event.source,
                    field=result.field,
                    reason=result.reason,
                )
                return result
        return ValidationResult.ok()

    def _check_date(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        rules = self.config.date_rules
        diff_days = math.floor((event.date - self._now()).total_seconds() / 86400)

        if diff_days < rules.min_days_in_future:
            return ValidationResult.reject(
                f"Evento muy en el pasado ({abs(diff_days)} días atrás)", "date"
            )
        if diff_days > rules.max_days_in_future:
            return ValidationResult.reject(
                f"Evento muy lejano ({diff_days} días en el futuro)", "date"
            )
        if not rules.allow_past_events and diff_days < 0:
            return ValidationResult.reject("Eventos pasados no permitidos", "date")
        return ValidationResult.ok()

    def _check_location(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        if not self.config.location_rules.required_location:
            return ValidationResult.ok()

        if not event.city.strip():
            return ValidationResult.reject("Ciudad es requerida", "city")
        if not event.country.strip():
            return ValidationResult.reject("País es requerido", "country")

        if preferences.allowed_countries and event.country.upper() not in {
            c.upper() for c in preferences.allowed_countries
        }:
            return ValidationResult.reject(f"País no permitido: {event.country}", "country")

        if preferences.allowed_cities and event.city.lower() not in {
            c.lower() for c in preferences.allowed_cities
        }:
            return ValidationResult.reject(f"Ciudad no permitida: {event.city}", "city")

        return ValidationResult.ok()

    def _check_category(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        if preferences.allowed_categories and event.category not in preferences.allowed_categories:
            return ValidationResult.reject(
                f"Categoría no permitida: {event.category.value}", "category"
            )
        return ValidationResult.ok()

    def _check_genre(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        if not event.genre:
            return ValidationResult.ok()

        genre = event.genre.lower()
        if genre in {g.lower() for g in preferences.blocked_genres}:
            return ValidationResult.reject(f"Género bloqueado: {event.genre}", "genre")

        if preferences.allowed_genres and genre not in {g.lower() for g in preferences.allowed_genres}:
            return ValidationResult.reject(f"Género no permitido: {event.genre}", "genre")

        return ValidationResult.ok()

    def _check_venue_size(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        if event.venue_capacity is None or not preferences.allowed_venue_sizes:
            return ValidationResult.ok()

        size = calculate_venue_size(event.venue_capacity, preferences.venue_size_thresholds)
        if size not in preferences.allowed_venue_sizes:
            return ValidationResult.reject(
                f"Tamaño de venue no permitido: {size.value}", "venue_capacity"
            )
        return ValidationResult.ok()

    def _check_content(self, event: Event, preferences: GlobalPreferences) -> ValidationResult:
        min_length = self.config.content_rules.min_title_length
        if len(event.title) < min_length:
            return ValidationResult.reject(
                f"Título muy corto (mínimo {min_length} caracteres)", "title"
            )
        return ValidationResult.ok()

    # ==========================================
    # Normalization and update policy
    # ==========================================

    def normalize(self, event: Event) -> Event:
        """Return a copy with city, country, category and text normalized."""
        return event.model_copy(
            update={
                "city": normalize_city(event.city),
                "country": normalize_country(event.country),
                "category": category_from_label(event.category),
                "title": event.title.strip(),
                "description": event.description.strip() if event.description else None,
            }
        )

    def should_update(self, incoming: Event, existing: Event) -> bool:
        """Decide whether ``incoming`` carries better data than ``existing``."""
        incoming_desc = len(incoming.description or "")
        existing_desc = len(existing.description or "")
        if incoming_desc > existing_desc * 1.5:
            return True

        if incoming.image_url and not existing.image_url:
            return True

        if incoming.price and not existing.price:
            return True

        return self.source_reliability(incoming.source) > self.source_reliability(existing.source)

    @staticmethod
    def source_reliability(source: str) -> int:
        return SOURCE_RELIABILITY.get(source, 1)

