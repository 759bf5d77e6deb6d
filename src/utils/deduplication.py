"""Event deduplication utilities.

An incoming event is a duplicate of a stored one when either:

1. Both share the same ``(source, external_id)``, or
2. All three fuzzy signals hold: similar title, dates within a tolerance
   window and similar venue name. A single strong signal is never enough,
   since listings share common words ("Tributo", "Fiesta", ...).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from difflib import SequenceMatcher

from src.core.event_model import Event
from src.logging import get_logger
from src.utils.text import normalize_text

logger = get_logger(__name__)


@dataclass(frozen=True)
class DuplicateRules:
    """Thresholds for fuzzy duplicate detection."""

    title_threshold: float = 0.85
    venue_threshold: float = 0.8
    date_tolerance_hours: float = 24.0


DEFAULT_DUPLICATE_RULES = DuplicateRules()


def similarity(text1: str | None, text2: str | None) -> float:
    """Calculate similarity ratio between two strings.

    Uses SequenceMatcher over normalized text.

    Returns:
        Similarity ratio (0.0 to 1.0)
    """
    norm1 = normalize_text(text1)
    norm2 = normalize_text(text2)

    if not norm1 or not norm2:
        return 0.0

    return SequenceMatcher(None, norm1, norm2).ratio()


def is_exact_match(candidate: Event, existing: Event) -> bool:
    """Same external origin, regardless of any other field."""
    return candidate.key == existing.key


def is_fuzzy_match(
    candidate: Event,
    existing: Event,
    rules: DuplicateRules = DEFAULT_DUPLICATE_RULES,
) -> bool:
    """Check the three-signal rule: title AND date window AND venue."""
    hours_apart = abs((candidate.date - existing.date).total_seconds()) / 3600
    if hours_apart > rules.date_tolerance_hours:
        return False

    if similarity(candidate.title, existing.title) < rules.title_threshold:
        return False

    # Without both venue names the third signal cannot hold
    if not candidate.venue_name or not existing.venue_name:
        return False

    return similarity(candidate.venue_name, existing.venue_name) >= rules.venue_threshold


def find_duplicate(
    candidate: Event,
    existing_events: Iterable[Event],
    rules: DuplicateRules = DEFAULT_DUPLICATE_RULES,
) -> Event | None:
    """Find the stored event that ``candidate`` duplicates.

    Exact ``(source, external_id)`` matches are preferred over fuzzy ones.
    Among fuzzy matches the first one in iteration order wins.

    Args:
        candidate: Normalized incoming event
        existing_events: Stored events to compare against
        rules: Fuzzy matching thresholds

    Returns:
        The matching stored event, or None
    """
    existing = list(existing_events)

    for event in existing:
        if is_exact_match(candidate, event):
            return event

    for event in existing:
        if is_fuzzy_match(candidate, event, rules):
            logger.debug(
                "fuzzy_duplicate_found",
                title=candidate.title,
                source=candidate.source,
                existing_source=event.source,
                existing_id=event.id,
            )
            return event

    return None
