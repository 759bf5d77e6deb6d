"""Ticketmaster Discovery API v2 adapter.

API docs: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/
"""

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from dateutil import parser as dateutil_parser

from src.core.base_adapter import AdapterType, BaseAdapter, FetchParams
from src.core.event_model import EventCategory, RawEvent
from src.core.exceptions import InvalidConfigError, InvalidDateError
from src.core.retry import RetryPolicy, SleepFunc
from src.logging import get_logger
from src.utils.date_parser import DEFAULT_TIMEZONE

logger = get_logger(__name__)

TICKETMASTER_URL = "https://app.ticketmaster.com/discovery/v2/events.json"


def map_category(segment: str | None, genre: str | None) -> EventCategory:
    """Map a Ticketmaster segment/genre pair to an EventCategory."""
    segment = (segment or "").lower()
    genre = (genre or "").lower()

    if "music" in segment:
        return EventCategory.FESTIVAL if "festival" in genre else EventCategory.CONCIERTO

    if "arts" in segment:
        if "theatre" in genre or "theater" in genre:
            return EventCategory.TEATRO
        if "opera" in genre:
            return EventCategory.OPERA
        if "ballet" in genre or "dance" in genre:
            return EventCategory.BALLET
        if "comedy" in genre or "stand-up" in genre:
            return EventCategory.STAND_UP
        return EventCategory.OTRO

    if "film" in segment or "sports" in segment:
        return EventCategory.OTRO

    # Segment not conclusive: fall back to the genre
    if "comedy" in genre or "stand-up" in genre:
        return EventCategory.STAND_UP
    if "festival" in genre:
        return EventCategory.FESTIVAL
    return EventCategory.OTRO


def parse_start_date(start: dict[str, Any], tz: ZoneInfo) -> datetime:
    """Start date from ``dateTime``, else ``localDate`` + ``localTime``, else ``localDate``.

    Raises:
        InvalidDateError: when no usable date is present
    """
    try:
        if start.get("dateTime"):
            return dateutil_parser.isoparse(start["dateTime"])

        local_date = start.get("localDate")
        if local_date:
            local_time = start.get("localTime") or "00:00:00"
            return dateutil_parser.isoparse(f"{local_date}T{local_time}").replace(tzinfo=tz)
    except ValueError:
        pass
    raise InvalidDateError(str(start), source="ticketmaster") from None


def _largest_image(images: list[dict[str, Any]] | None) -> str | None:
    candidates = [img for img in images or [] if img.get("url")]
    if not candidates:
        return None
    best = max(candidates, key=lambda img: (img.get("width") or 0) * (img.get("height") or 0))
    return best["url"]


def map_event(item: dict[str, Any], tz: ZoneInfo) -> RawEvent:
    """Map one Discovery API event to a RawEvent."""
    venue = ((item.get("_embedded") or {}).get("venues") or [{}])[0]
    classification = (item.get("classifications") or [{}])[0]
    price_range = (item.get("priceRanges") or [{}])[0]

    segment = (classification.get("segment") or {}).get("name")
    genre = (classification.get("genre") or {}).get("name")

    return RawEvent(
        source="ticketmaster",
        external_id=item["id"],
        title=item.get("name") or "",
        date=parse_start_date((item.get("dates") or {}).get("start") or {}, tz),
        venue=venue.get("name"),
        city=(venue.get("city") or {}).get("name"),
        country=(venue.get("country") or {}).get("countryCode"),
        address=(venue.get("address") or {}).get("line1"),
        category=map_category(segment, genre).value,
        genre=genre,
        image_url=_largest_image(item.get("images")),
        ticket_url=item.get("url"),
        price=price_range.get("min"),
        price_max=price_range.get("max"),
        currency=price_range.get("currency") or "USD",
    )


class TicketmasterAdapter(BaseAdapter):
    """Events from the Ticketmaster Discovery API (music in Argentina by default)."""

    name = "ticketmaster"
    adapter_type = AdapterType.API

    def __init__(
        self,
        api_key: str | None,
        *,
        country_code: str = "AR",
        city: str | None = None,
        classification: str = "Music",
        size: int = 100,
        timeout: float = 10.0,
        timezone: str = DEFAULT_TIMEZONE,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        if not api_key:
            raise InvalidConfigError("Ticketmaster API key is required", field="api_key", source=self.name)

        super().__init__(
            retry_policy=retry_policy,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
            sleep=sleep,
        )
        self.api_key = api_key
        self.country_code = country_code
        self.city = city
        self.classification = classification
        self.size = size
        self.tz = ZoneInfo(timezone)

    def build_params(self, params: FetchParams) -> dict[str, Any]:
        query: dict[str, Any] = {
            "apikey": self.api_key,
            "countryCode": params.country_code or self.country_code,
            "classificationName": params.classification or self.classification,
            "size": params.size or self.size,
            "sort": "date,asc",
        }
        city = params.city or self.city
        if city:
            query["city"] = city
        return query

    async def fetch(self, params: FetchParams | None = None) -> list[RawEvent]:
        """Fetch one page of events; items without a usable date are skipped.

        Raises:
            AuthError: invalid API key (401)
            RateLimitError: quota exceeded (429)
            TimeoutError, NetworkError: transport failures
            ParseError: the body is not JSON
        """
        params = params or FetchParams()
        data = await self.fetch_json(TICKETMASTER_URL, params=self.build_params(params))
        items = ((data or {}).get("_embedded") or {}).get("events") or []

        if not items:
            logger.warning("ticketmaster_no_events", country_code=params.country_code or self.country_code)
            return []

        events = []
        for item in items:
            try:
                events.append(map_event(item, self.tz))
            except (InvalidDateError, KeyError, ValueError) as e:
                logger.warning("ticketmaster_map_failed", event_id=item.get("id"), error=str(e))

        logger.info("ticketmaster_fetched", fetched=len(items), mapped=len(events))
        return events
