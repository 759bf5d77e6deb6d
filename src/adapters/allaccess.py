"""AllAccess adapter.

AllAccess (Crowder platform) renders its homepage from JSON passed to
``App.bootstrapData(...)`` in an inline script. Instead of CSS selectors we
parse that JSON and map the event cards of its ``Grid`` widgets.
"""

import json
import re
from datetime import datetime
from typing import Any

import httpx

from src.core.base_adapter import AdapterType, BaseAdapter, FetchParams
from src.core.event_model import RawEvent
from src.core.exceptions import ParseError
from src.core.retry import RetryPolicy, SleepFunc
from src.logging import get_logger
from src.utils.date_parser import parse_spanish_date
from src.utils.urls import to_absolute_url

logger = get_logger(__name__)

BASE_URL = "https://www.allaccess.com.ar"

BOOTSTRAP_PATTERN = re.compile(r"App\.bootstrapData\(([\s\S]*?)\);(?:\s*App\.start\(\))?")

EVENT_LINK_MARKERS = ("/event/", "/page/")

# Known venues recognizable from the event slug
VENUE_PATTERNS: dict[str, re.Pattern[str]] = {
    "Teatro Vorterix": re.compile(r"-en-vorterix|-vorterix", re.IGNORECASE),
    "The Roxy Live": re.compile(r"-roxy-live", re.IGNORECASE),
    "The Roxy Bar": re.compile(r"-roxy-bar", re.IGNORECASE),
    "Movistar Arena": re.compile(r"-movistar-arena", re.IGNORECASE),
    "Estadio River Plate": re.compile(r"-river-plate|-estadio-river", re.IGNORECASE),
    "Teatro Colón": re.compile(r"-teatro-colon", re.IGNORECASE),
    "Hipódromo de San Isidro": re.compile(r"-hipodromo", re.IGNORECASE),
}

SLUG_PATTERN = re.compile(r"/(?:event|page)/([^/?]+)")


def extract_bootstrap_data(html: str) -> dict[str, Any]:
    """Parse the JSON argument of ``App.bootstrapData(...)``.

    Raises:
        ParseError: when the call is missing or its argument is not JSON
    """
    match = BOOTSTRAP_PATTERN.search(html)
    if not match or not match.group(1).strip():
        raise ParseError("Could not find App.bootstrapData() in HTML", source="allaccess")

    try:
        return json.loads(match.group(1).strip())
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse bootstrapData JSON: {e}", source="allaccess") from e


def extract_cards(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Event cards of enabled, non mobile-only Grid widgets, unique by link."""
    widgets = ((data.get("model") or {}).get("data") or {}).get("widgetComponents")
    if not isinstance(widgets, list):
        logger.warning("allaccess_no_widgets")
        return []

    cards_by_link: dict[str, dict[str, Any]] = {}
    for widget in widgets:
        state = widget.get("state") or {}
        if widget.get("widgetType") != "Grid" or not state.get("enabled"):
            continue

        # Mobile widgets repeat the desktop cards
        if (state.get("config") or {}).get("deviceVisibility") == "show_mobile":
            continue

        for card in state.get("cards") or []:
            link = card.get("link")
            if isinstance(link, str) and any(marker in link for marker in EVENT_LINK_MARKERS):
                cards_by_link.setdefault(link, card)

    return list(cards_by_link.values())


def infer_venue(link: str) -> str | None:
    for venue_name, pattern in VENUE_PATTERNS.items():
        if pattern.search(link):
            return venue_name
    return None


def title_from_link(link: str) -> str:
    """Readable title from the event slug: ``/event/buenos-vampiros`` -> ``Buenos Vampiros``."""
    match = SLUG_PATTERN.search(link)
    if not match:
        return "Untitled Event"
    return " ".join(word[:1].upper() + word[1:] for word in match.group(1).split("-"))


def map_card(card: dict[str, Any], base_url: str = BASE_URL, now: datetime | None = None) -> RawEvent | None:
    """Map a Crowder card to a RawEvent, or None when it has no usable date."""
    link = card.get("link")
    if not link:
        return None

    url = to_absolute_url(link.removeprefix("../"), base_url)

    date = None
    for candidate in (card.get("description"), card.get("line1"), card.get("line2")):
        if isinstance(candidate, str) and candidate.strip():
            date = parse_spanish_date(candidate, now=now)
            if date is not None:
                break

    title = card.get("title") or title_from_link(link)
    if date is None:
        logger.warning("allaccess_card_without_date", title=title, link=link)
        return None

    image = card.get("imgUrl")
    return RawEvent(
        source="allaccess",
        external_id=url,
        title=title,
        description=card.get("content") or None,
        date=date,
        venue=infer_venue(link),
        city="Buenos Aires",
        country="AR",
        category="Concierto",
        image_url=to_absolute_url(image, base_url) if image else None,
        ticket_url=url,
    )


class AllAccessAdapter(BaseAdapter):
    """Events from the AllAccess homepage widgets."""

    name = "allaccess"
    adapter_type = AdapterType.STATIC

    def __init__(
        self,
        *,
        base_url: str = BASE_URL,
        user_agent: str | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
        now: datetime | None = None,
    ) -> None:
        headers = {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "es-AR,es;q=0.9,en;q=0.8",
        }
        if user_agent:
            headers["User-Agent"] = user_agent
        super().__init__(
            retry_policy=retry_policy,
            timeout=15.0,
            headers=headers,
            transport=transport,
            sleep=sleep,
        )
        self.base_url = base_url
        self.now = now

    async def fetch(self, params: FetchParams | None = None) -> list[RawEvent]:
        params = params or FetchParams()
        url = to_absolute_url(params.url or "/", self.base_url)

        html = await self.fetch_text(url)
        cards = extract_cards(extract_bootstrap_data(html))

        events = []
        for card in cards:
            event = map_card(card, self.base_url, self.now)
            if event is not None:
                events.append(event)

        logger.info("allaccess_fetched", cards=len(cards), events=len(events))
        return events
