"""Spanish date parsing utilities.

Listing sites in Argentina publish dates in many shapes:

- "15 de marzo de 2025", "15 marzo 2025", "15 mar 2025"
- "09 NOV" (no year: next occurrence is assumed)
- "Martes 11 NOV - 20:45 hrs"
- "20 noviembre 2025 y 2 fechas más" (first date wins)
- "28 de Noviembre y 5 de Diciembre" (first date wins)
- "15/03/2025 21:00", "2025-03-15T20:00:00"

Every parser returns a timezone-aware datetime in the site's timezone.
"""

import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from dateutil import parser as dateutil_parser

from src.utils.text import clean_whitespace

DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"

# Spanish month names mapping
SPANISH_MONTHS = {
    "enero": 1,
    "ene": 1,
    "febrero": 2,
    "feb": 2,
    "marzo": 3,
    "mar": 3,
    "abril": 4,
    "abr": 4,
    "mayo": 5,
    "may": 5,
    "junio": 6,
    "jun": 6,
    "julio": 7,
    "jul": 7,
    "agosto": 8,
    "ago": 8,
    "septiembre": 9,
    "setiembre": 9,
    "sep": 9,
    "sept": 9,
    "set": 9,
    "octubre": 10,
    "oct": 10,
    "noviembre": 11,
    "nov": 11,
    "diciembre": 12,
    "dic": 12,
}

# "y 2 fechas más", "y 5 de diciembre": everything after the first date
MULTI_DATE_SUFFIX = re.compile(r"\s+(?:y|/|,)\s+\d.*$")

ISO_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}(?:[t ]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?)?(?:z|[+-]\d{2}:?\d{2})?")
NUMERIC_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})(?!\d)")
SPANISH_PATTERN = re.compile(
    r"(?<!\d)(\d{1,2})\s*(?:de\s+)?([a-záéíóúñ]+)\.?,?(?:\s+(?:de|del)?\s*(\d{4}))?"
)

TIME_PATTERNS = [
    # "a las 21:00", "a las 21"
    re.compile(r"a\s+las\s+(\d{1,2})(?:[:.](\d{2}))?"),
    # "20:45", "20:45 hrs", "20.45 hs"
    re.compile(r"(?<![\d/])(\d{1,2})[:](\d{2})(?![\d/])"),
    # "21 hs", "21hrs", "21 h"
    re.compile(r"(?<![\d/])(\d{1,2})\s*(?:hs|hrs|h)\b"),
]


def parse_spanish_month(month_str: str) -> int | None:
    """Parse Spanish month name to month number.

    Args:
        month_str: Month name in Spanish (e.g., "enero", "ENE", "set")

    Returns:
        Month number (1-12) or None if not recognized
    """
    return SPANISH_MONTHS.get(month_str.lower().strip().rstrip("."))


def parse_time(text: str | None) -> time | None:
    """Extract a time of day from free text.

    Args:
        text: Text such as "21:00", "a las 21 hs" or "20:45 hrs"

    Returns:
        time object or None if no valid time was found
    """
    if not text:
        return None

    lowered = text.lower()
    for pattern in TIME_PATTERNS:
        match = pattern.search(lowered)
        if not match:
            continue
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.lastindex and match.lastindex >= 2 and match.group(2) else 0
        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return time(hour, minute)
    return None


def _localize(day: date, at: time | None, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at or time(0, 0), tzinfo=tz)


def _parse_iso(text: str, tz: ZoneInfo) -> datetime | None:
    match = ISO_PATTERN.search(text)
    if not match:
        return None
    try:
        parsed = dateutil_parser.isoparse(match.group(0).upper())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _parse_numeric(text: str, at: time | None, tz: ZoneInfo) -> datetime | None:
    match = NUMERIC_PATTERN.search(text)
    if not match:
        return None
    day, month, year = (int(g) for g in match.groups())
    if year < 100:
        year += 2000
    try:
        return _localize(date(year, month, day), at, tz)
    except ValueError:
        return None


def _parse_spanish(text: str, at: time | None, tz: ZoneInfo, now: datetime) -> datetime | None:
    for match in SPANISH_PATTERN.finditer(text):
        month = parse_spanish_month(match.group(2))
        if month is None:
            continue

        day = int(match.group(1))
        if match.group(3):
            year = int(match.group(3))
            try:
                return _localize(date(year, month, day), at, tz)
            except ValueError:
                return None

        # No year: take the next occurrence of this day
        today = now.astimezone(tz).date()
        try:
            candidate = date(today.year, month, day)
            if candidate < today:
                candidate = date(today.year + 1, month, day)
        except ValueError:
            return None
        return _localize(candidate, at, tz)

    return None


def parse_spanish_date(
    date_str: str | None,
    tz: str | ZoneInfo = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> datetime | None:
    """Parse a Spanish date string into an aware datetime.

    Handles the formats listed in the module docstring. A time of day
    found anywhere in the string is applied to the date.

    Args:
        date_str: Date string in Spanish
        tz: IANA timezone of the site publishing the date
        now: Reference "now" for yearless dates (defaults to current time)

    Returns:
        Aware datetime or None if parsing failed
    """
    if not date_str:
        return None

    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    now = now or datetime.now(zone)

    text = clean_whitespace(date_str).lower()
    if not text:
        return None

    iso = _parse_iso(text, zone)
    if iso is not None:
        return iso

    text = MULTI_DATE_SUFFIX.sub("", text)
    at = parse_time(text)

    parsed = _parse_numeric(text, at, zone)
    if parsed is not None:
        return parsed

    parsed = _parse_spanish(text, at, zone, now)
    if parsed is not None:
        return parsed

    # Fallback for English / unusual formats
    try:
        fallback = dateutil_parser.parse(text, dayfirst=True)
    except (ValueError, OverflowError):
        return None
    if fallback.tzinfo is None:
        fallback = fallback.replace(tzinfo=zone)
    return fallback


def combine_date_and_time(day: datetime, time_str: str | None) -> datetime:
    """Apply an ``HH:MM`` style time to an aware datetime, keeping its date."""
    at = parse_time(time_str)
    if at is None:
        return day
    return day.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
