"""Config-driven scraper for server-rendered HTML listings."""

from datetime import datetime
from typing import Any

import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from src.adapters.html_extractor import extract_fields, select_items
from src.core.base_adapter import AdapterType, BaseAdapter, FetchParams
from src.core.event_model import RawEvent
from src.core.exceptions import MissingFieldError, ParseError, SourceFetchError
from src.core.retry import SleepFunc
from src.core.scraper_config import PaginationType, ScraperConfig
from src.logging import get_logger
from src.utils.date_parser import combine_date_and_time
from src.utils.text import slugify
from src.utils.transforms import TransformContext, extract_price
from src.utils.urls import to_absolute_url

logger = get_logger(__name__)

DEFAULT_CATEGORY = "Concierto"
DEFAULT_CURRENCY = "ARS"


class StaticHtmlScraper(BaseAdapter):
    """Scrape a listing site described by a ``ScraperConfig``.

    One GET per listing page, one RawEvent per item. When the config
    enables a detail page, each item with a link is enriched by a second
    request; detail values override listing values.
    """

    adapter_type = AdapterType.STATIC

    def __init__(
        self,
        config: ScraperConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
        now: datetime | None = None,
    ) -> None:
        self.config = config
        self.name = config.name
        super().__init__(
            retry_policy=config.error_handling.retry,
            timeout=config.error_handling.timeout,
            headers=config.request_headers,
            transport=transport,
            sleep=sleep,
        )
        self.context = TransformContext(base_url=config.base_url, timezone=config.timezone, now=now)

    # ==========================================
    # Page loading (overridden by JS-rendered scrapers)
    # ==========================================

    async def load_page(self, url: str, listing: bool = False) -> str:
        return await self.fetch_text(url)

    def max_pages(self, params: FetchParams) -> int:
        pagination = self.config.listing.pagination
        if pagination.type != PaginationType.URL:
            return 1
        return params.max_pages or pagination.max_pages

    # ==========================================
    # Main Scraping Method
    # ==========================================

    async def fetch(self, params: FetchParams | None = None) -> list[RawEvent]:
        """Scrape every listing page, then the detail pages if enabled.

        Raises:
            SourceFetchError: when a page fails and ``skip_failed_pages`` is off
        """
        params = params or FetchParams()
        error_handling = self.config.error_handling
        max_pages = self.max_pages(params)

        logger.info("scrape_started", source=self.name, max_pages=max_pages)

        items: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            url = to_absolute_url(self.config.page_url(page, params.url), self.config.base_url)
            try:
                html = await self.load_page(url, listing=True)
            except SourceFetchError as e:
                if not error_handling.skip_failed_pages:
                    raise
                logger.warning("page_failed", source=self.name, page=page, url=url, error=str(e))
                continue

            page_items = self.parse_listing(html)
            logger.info("page_parsed", source=self.name, page=page, items=len(page_items))
            items.extend(page_items)

            if page < max_pages:
                await self.sleep(self.config.page_delay)

        if self.config.detail_page is not None and self.config.detail_page.enabled:
            items = await self._enrich_with_details(items)

        events = []
        for values in items:
            event = self._build_raw_event(values)
            if event is not None:
                events.append(event)

        logger.info("scrape_complete", source=self.name, items=len(items), events=len(events))
        return events

    # ==========================================
    # Parsing
    # ==========================================

    def parse_listing(self, html: str) -> list[dict[str, Any]]:
        """Extract field values for every item on a listing page."""
        soup = BeautifulSoup(html, "html.parser")
        listing = self.config.listing
        results = []

        for index, item in enumerate(select_items(soup, listing.item_selector, listing.container_selector)):
            try:
                results.append(
                    extract_fields(item, self.config.selectors, self.config.transforms, self.context, self.name)
                )
            except Exception as e:
                if not self.config.error_handling.skip_failed_events:
                    raise ParseError(f"Failed to extract item {index}: {e}", source=self.name) from e
                logger.warning("item_extraction_failed", source=self.name, index=index, error=str(e))
        return results

    def parse_detail(self, html: str) -> dict[str, Any]:
        detail = self.config.detail_page
        soup = BeautifulSoup(html, "html.parser")
        return extract_fields(soup, detail.selectors, detail.transforms, self.context, self.name)

    async def _enrich_with_details(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Fetch detail pages sequentially, merging their values over the listing's."""
        detail = self.config.detail_page
        enriched = []
        fetched = 0

        for values in items:
            link = values.get("link")
            if not link:
                enriched.append(values)
                continue

            if fetched:
                await self.sleep(detail.delay_between_requests)
            fetched += 1

            url = to_absolute_url(link, self.config.base_url)
            try:
                details = self.parse_detail(await self.load_page(url))
            except Exception as e:
                if not self.config.error_handling.skip_failed_events:
                    raise
                logger.warning("detail_page_failed", source=self.name, url=url, error=str(e))
                enriched.append(values)
                continue

            merged = {**values, **details}
            for field_name, default in detail.default_values.items():
                merged.setdefault(field_name, default)
            enriched.append(merged)

        logger.info("detail_pages_fetched", source=self.name, count=fetched)
        return enriched

    # ==========================================
    # RawEvent construction
    # ==========================================

    def _price(self, value: Any) -> float | None:
        if value is None or isinstance(value, (int, float)):
            return value
        try:
            return float(value)
        except ValueError:
            return extract_price(str(value), self.context)

    def _build_raw_event(self, values: dict[str, Any]) -> RawEvent | None:
        values = {**self.config.default_values, **values}

        date = values.get("date")
        if isinstance(date, datetime) and values.get("time"):
            date = combine_date_and_time(date, values["time"])

        title = values.get("title")
        venue = values.get("venue")
        missing = [name for name, value in (("title", title), ("date", date), ("venue", venue)) if not value]
        if missing:
            if not self.config.error_handling.skip_failed_events:
                raise MissingFieldError(missing[0], event_id=title or values.get("link"), source=self.name)
            logger.warning(
                "item_missing_required_fields",
                source=self.name,
                title=title,
                date=str(date) if date else None,
                venue=venue,
            )
            return None

        link = to_absolute_url(values.get("link"), self.config.base_url) or None
        image = to_absolute_url(values.get("image"), self.config.base_url) or None
        price = self._price(values.get("price"))
        end_date = values.get("end_date")

        if link:
            external_id = link
        else:
            date_part = date.isoformat() if isinstance(date, datetime) else str(date)
            external_id = slugify(f"{title}_{date_part}_{venue}", "_", 100)

        try:
            return RawEvent(
                source=self.name,
                external_id=external_id,
                title=title,
                date=date,
                end_date=end_date if isinstance(end_date, datetime) else None,
                venue=venue,
                city=values.get("city"),
                country=values.get("country"),
                address=values.get("address"),
                price=price,
                price_max=self._price(values.get("price_max")),
                currency=DEFAULT_CURRENCY if price is not None else None,
                category=values.get("category") or DEFAULT_CATEGORY,
                genre=values.get("genre"),
                description=values.get("description"),
                image_url=image,
                ticket_url=link,
            )
        except ValidationError as e:
            if not self.config.error_handling.skip_failed_events:
                raise ParseError(f"Invalid event '{title}': {e}", source=self.name) from e
            logger.warning("item_invalid", source=self.name, title=title, error=str(e))
            return None
