"""Tests for scraper configs and the config-driven HTML scraper."""

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import httpx
import pytest

from src.adapters import build_source, create_web_scraper, list_sources
from src.adapters.js_rendered import JsRenderedScraper
from src.adapters.static_html import StaticHtmlScraper
from src.config.scrapers import get_scraper_config, list_scraper_configs
from src.core.exceptions import (
    InvalidConfigError,
    MissingFieldError,
    NetworkError,
    SourceNotFoundError,
    UnknownTransformError,
)
from src.core.scraper_config import PaginationType, ScraperConfig, parse_selector

BA = ZoneInfo("America/Argentina/Buenos_Aires")


def make_config(**overrides: Any) -> ScraperConfig:
    values: dict[str, Any] = {
        "name": "testsite",
        "base_url": "https://example.com",
        "listing": {"url": "/shows", "item_selector": ".event"},
        "selectors": {
            "title": "h3",
            "date": ".date",
            "venue": ".venue",
            "link": "a@href",
            "price": ".price",
        },
        "transforms": {"date": "parse_spanish_date", "price": "extract_price"},
        "default_values": {"city": "Buenos Aires", "country": "AR"},
    }
    values.update(overrides)
    return ScraperConfig(**values)


def event_html(index: int, venue: str = "Niceto Club") -> str:
    return f"""
    <div class="event">
      <h3>Show {index}</h3>
      <span class="date">15 de marzo de 2030 21:00</span>
      <span class="venue">{venue}</span>
      <span class="price">$ 12.500</span>
      <a href="/show/{index}">Entradas</a>
    </div>
    """


def listing_html(*items: str) -> str:
    return f"<html><body><div class='grid'>{''.join(items)}</div></body></html>"


# ============================================================
# CONFIG
# ============================================================


class TestSelectorParsing:
    """Tests for the selector mini-language."""

    def test_text_selector(self):
        (selector,) = parse_selector("h3.title")

        assert selector.css == "h3.title"
        assert selector.attribute is None

    def test_attribute_selector(self):
        (selector,) = parse_selector("img.poster@src")

        assert selector.css == "img.poster"
        assert selector.attribute == "src"

    def test_self_attribute(self):
        (selector,) = parse_selector("@href")

        assert selector.css is None
        assert selector.attribute == "href"

    def test_alternatives_with_attributes(self):
        selectors = parse_selector("meta[property='og:image']@content, img@src")

        assert [s.attribute for s in selectors] == ["content", "src"]

    def test_plain_css_group_kept_whole(self):
        (selector,) = parse_selector("h1, h2")

        assert selector.css == "h1, h2"

    def test_empty_selector_rejected(self):
        with pytest.raises(InvalidConfigError):
            parse_selector("  ")


class TestScraperConfig:
    """Tests for ScraperConfig validation."""

    def test_valid_config(self):
        config = make_config()

        assert config.name == "testsite"
        assert config.listing.pagination.type == PaginationType.NONE

    def test_unknown_transform_fails_at_construction(self):
        with pytest.raises(UnknownTransformError):
            make_config(transforms={"date": "parse_klingon_date"})

    def test_unknown_field_rejected(self):
        with pytest.raises(InvalidConfigError):
            make_config(selectors={"title": "h3", "date": ".date", "colour": ".c"})

    def test_missing_title_selector_rejected(self):
        with pytest.raises(InvalidConfigError):
            make_config(selectors={"date": ".date"})

    def test_missing_selector_allowed_with_default(self):
        config = make_config(
            selectors={"title": "h3", "date": ".date"},
            default_values={"venue": "Café Berlín"},
        )

        assert config.default_values["venue"] == "Café Berlín"

    def test_invalid_pagination_pattern(self):
        with pytest.raises(InvalidConfigError):
            make_config(
                listing={
                    "url": "/shows",
                    "item_selector": ".event",
                    "pagination": {"type": "url", "pattern": "/shows/page"},
                }
            )

    def test_unknown_timezone(self):
        with pytest.raises(InvalidConfigError):
            make_config(timezone="Mars/Olympus_Mons")

    def test_page_urls(self):
        config = make_config(
            listing={
                "url": "/shows",
                "item_selector": ".event",
                "pagination": {"type": "url", "max_pages": 3},
            }
        )

        assert config.page_url(1) == "/shows"
        assert config.page_url(2) == "/shows?page=2"

    def test_page_url_pattern(self):
        config = make_config(
            listing={
                "url": "/shows",
                "item_selector": ".event",
                "pagination": {"type": "url", "pattern": "/shows/page/{page}"},
            }
        )

        assert config.page_url(3) == "/shows/page/3"

    def test_page_delay_defaults_to_rate_limit(self):
        config = make_config(rate_limit={"requests_per_second": 2})

        assert config.page_delay == 0.5

    def test_config_is_immutable(self):
        config = make_config()

        with pytest.raises(Exception):
            config.name = "other"


class TestSiteConfigs:
    """Tests for the bundled site configurations."""

    def test_sites_registered(self):
        names = list_scraper_configs()

        for name in ("livepass", "movistararena", "teatrocoliseo", "teatrovorterix"):
            assert name in names

    def test_movistar_arena_requires_javascript(self):
        config = get_scraper_config("movistararena")

        assert config.requires_javascript is True
        assert isinstance(create_web_scraper(config), JsRenderedScraper)

    def test_livepass_has_detail_page(self):
        config = get_scraper_config("livepass")

        assert config.detail_page is not None
        assert config.detail_page.enabled is True
        assert isinstance(create_web_scraper(config), StaticHtmlScraper)

    def test_unknown_site(self):
        with pytest.raises(SourceNotFoundError):
            get_scraper_config("nonexistent")

    def test_list_sources_includes_adapters(self):
        sources = list_sources()

        assert "ticketmaster" in sources
        assert "allaccess" in sources
        assert "livepass" in sources

    def test_build_unknown_source(self):
        with pytest.raises(SourceNotFoundError):
            build_source("nonexistent")


# ============================================================
# STATIC HTML SCRAPER
# ============================================================


class TestStaticHtmlScraper:
    """Tests for StaticHtmlScraper against a mocked HTTP transport."""

    @pytest.mark.asyncio
    async def test_fetch_single_page(self, sleep_recorder):
        """Test that every item becomes a RawEvent with transforms applied."""
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, text=listing_html(event_html(1), event_html(2)))
        )
        scraper = StaticHtmlScraper(make_config(), transport=transport, sleep=sleep_recorder)

        events = await scraper.fetch()
        await scraper.close()

        assert len(events) == 2
        first = events[0]
        assert first.title == "Show 1"
        assert first.date == datetime(2030, 3, 15, 21, 0, tzinfo=BA)
        assert first.venue == "Niceto Club"
        assert first.price == 12500
        assert first.currency == "ARS"
        assert first.city == "Buenos Aires"
        assert first.source == "testsite"
        assert first.ticket_url == "https://example.com/show/1"
        assert first.external_id == "https://example.com/show/1"

    @pytest.mark.asyncio
    async def test_pagination_fetches_every_page(self, sleep_recorder):
        """Test 3 pages of 10 items yield 30 events with a delay between pages."""
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            page = int(request.url.params.get("page", "1"))
            items = [event_html(page * 100 + i) for i in range(10)]
            return httpx.Response(200, text=listing_html(*items))

        config = make_config(
            listing={
                "url": "/shows",
                "item_selector": ".event",
                "pagination": {"type": "url", "max_pages": 3},
            }
        )
        scraper = StaticHtmlScraper(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)

        events = await scraper.fetch()
        await scraper.close()

        assert len(events) == 30
        assert requested == [
            "https://example.com/shows",
            "https://example.com/shows?page=2",
            "https://example.com/shows?page=3",
        ]
        assert sleep_recorder.calls == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_retry_with_exponential_backoff(self, sleep_recorder):
        """Test a failing page is tried 4 times with 1s, 2s and 4s waits."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        scraper = StaticHtmlScraper(make_config(), transport=httpx.MockTransport(handler), sleep=sleep_recorder)

        with pytest.raises(NetworkError) as exc_info:
            await scraper.fetch()
        await scraper.close()

        assert len(calls) == 4
        assert sleep_recorder.calls == [1.0, 2.0, 4.0]
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_retry_recovers(self, sleep_recorder):
        responses = [httpx.Response(500), httpx.Response(200, text=listing_html(event_html(1)))]
        scraper = StaticHtmlScraper(
            make_config(),
            transport=httpx.MockTransport(lambda request: responses.pop(0)),
            sleep=sleep_recorder,
        )

        events = await scraper.fetch()
        await scraper.close()

        assert len(events) == 1
        assert sleep_recorder.calls == [1.0]

    @pytest.mark.asyncio
    async def test_skip_failed_pages(self, sleep_recorder):
        """Test a failing page is skipped when skip_failed_pages is on."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "2":
                return httpx.Response(404)
            return httpx.Response(200, text=listing_html(event_html(int(request.url.params.get("page", "1")))))

        config = make_config(
            listing={
                "url": "/shows",
                "item_selector": ".event",
                "pagination": {"type": "url", "max_pages": 3, "delay_between_pages": 0},
            },
            error_handling={"skip_failed_pages": True, "retry": {"max_retries": 0}},
        )
        scraper = StaticHtmlScraper(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)

        events = await scraper.fetch()
        await scraper.close()

        assert [e.title for e in events] == ["Show 1", "Show 3"]

    @pytest.mark.asyncio
    async def test_failed_page_aborts_by_default(self, sleep_recorder):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "2":
                return httpx.Response(404)
            return httpx.Response(200, text=listing_html(event_html(1)))

        config = make_config(
            listing={
                "url": "/shows",
                "item_selector": ".event",
                "pagination": {"type": "url", "max_pages": 2},
            },
            error_handling={"retry": {"max_retries": 0}},
        )
        scraper = StaticHtmlScraper(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)

        with pytest.raises(NetworkError):
            await scraper.fetch()
        await scraper.close()

    @pytest.mark.asyncio
    async def test_items_missing_required_fields_skipped(self, sleep_recorder):
        incomplete = '<div class="event"><h3>Sin fecha</h3><span class="venue">Niceto</span></div>'
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, text=listing_html(event_html(1), incomplete))
        )
        scraper = StaticHtmlScraper(make_config(), transport=transport, sleep=sleep_recorder)

        events = await scraper.fetch()
        await scraper.close()

        assert [e.title for e in events] == ["Show 1"]

    @pytest.mark.asyncio
    async def test_missing_required_field_raises_when_not_skipping(self, sleep_recorder):
        incomplete = '<div class="event"><h3>Sin fecha</h3><span class="venue">Niceto</span></div>'
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=listing_html(incomplete)))
        scraper = StaticHtmlScraper(
            make_config(error_handling={"skip_failed_events": False}),
            transport=transport,
            sleep=sleep_recorder,
        )

        with pytest.raises(MissingFieldError) as exc_info:
            await scraper.fetch()
        await scraper.close()

        assert exc_info.value.field == "date"
        assert exc_info.value.source == "testsite"

    @pytest.mark.asyncio
    async def test_external_id_generated_without_link(self, sleep_recorder):
        html = listing_html(
            '<div class="event"><h3>Show sin link</h3>'
            '<span class="date">15 de marzo de 2030</span><span class="venue">Niceto</span></div>'
        )
        scraper = StaticHtmlScraper(
            make_config(),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=html)),
            sleep=sleep_recorder,
        )

        (event,) = await scraper.fetch()
        await scraper.close()

        assert event.external_id.startswith("show_sin_link_2030")
        assert event.ticket_url is None

    @pytest.mark.asyncio
    async def test_detail_values_override_listing(self, sleep_recorder):
        """Test detail page values win over listing values and defaults fill gaps."""
        detail_html = """
        <html><head><meta name="description" content="Sábado 15 de marzo de 2030 - 22:30 hrs"></head>
        <body><p class="detail-venue">Teatro Ópera</p><div class="desc">Gira 2030</div></body></html>
        """

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/show/"):
                return httpx.Response(200, text=detail_html)
            return httpx.Response(200, text=listing_html(event_html(1, venue="Listado"), event_html(2)))

        config = make_config(
            detail_page={
                "enabled": True,
                "selectors": {
                    "venue": ".detail-venue",
                    "description": ".desc",
                    "date": "meta[name='description']@content",
                },
                "transforms": {"date": "parse_spanish_date"},
                "default_values": {"genre": "Rock"},
                "delay_between_requests": 0.5,
            }
        )
        scraper = StaticHtmlScraper(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)

        events = await scraper.fetch()
        await scraper.close()

        assert len(events) == 2
        assert events[0].venue == "Teatro Ópera"
        assert events[0].description == "Gira 2030"
        assert events[0].date == datetime(2030, 3, 15, 22, 30, tzinfo=BA)
        assert events[0].genre == "Rock"
        assert sleep_recorder.calls == [0.5]

    @pytest.mark.asyncio
    async def test_failed_detail_keeps_listing_values(self, sleep_recorder):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/show/"):
                return httpx.Response(404)
            return httpx.Response(200, text=listing_html(event_html(1)))

        config = make_config(
            detail_page={"enabled": True, "selectors": {"venue": ".detail-venue"}},
            error_handling={"retry": {"max_retries": 0}},
        )
        scraper = StaticHtmlScraper(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)

        (event,) = await scraper.fetch()
        await scraper.close()

        assert event.venue == "Niceto Club"

    @pytest.mark.asyncio
    async def test_container_selector(self, sleep_recorder):
        html = f"""
        <div class="featured">{event_html(99)}</div>
        <div class="grid">{event_html(1)}{event_html(2)}</div>
        """
        config = make_config(listing={"url": "/shows", "item_selector": ".event", "container_selector": ".grid"})
        scraper = StaticHtmlScraper(
            config,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=html)),
            sleep=sleep_recorder,
        )

        events = await scraper.fetch()
        await scraper.close()

        assert [e.title for e in events] == ["Show 1", "Show 2"]

    def test_max_pages_override(self):
        config = make_config(
            listing={
                "url": "/shows",
                "item_selector": ".event",
                "pagination": {"type": "url", "max_pages": 5},
            }
        )
        scraper = StaticHtmlScraper(config)

        from src.core.base_adapter import FetchParams

        assert scraper.max_pages(FetchParams()) == 5
        assert scraper.max_pages(FetchParams(max_pages=2)) == 2
